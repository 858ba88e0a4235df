"""
数据模型定义
定义入站请求模型和上游请求负载的构建
"""
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional, Union

from src.constants import PayloadDefaults

Number = Union[int, float]


class ChatCompletionRequest(BaseModel):
    """入站聊天补全请求，消息条目不做结构校验，原样转发"""
    # 严格模式：类型不符返回400，不做隐式转换
    model_config = ConfigDict(strict=True)

    model: Optional[str] = None
    messages: Optional[List[Any]] = None
    temperature: Optional[Number] = None
    top_p: Optional[Number] = None
    top_k: Optional[Number] = None
    max_tokens: Optional[Number] = None
    presence_penalty: Optional[Number] = None
    frequency_penalty: Optional[Number] = None
    stream: Optional[bool] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None

    def has_required_fields(self) -> bool:
        return bool(self.model) and bool(self.messages)

    @property
    def is_stream(self) -> bool:
        return bool(self.stream)

    @property
    def tools_enabled(self) -> bool:
        return bool(self.tools)


def _default(value, default):
    # 显式判断 None，调用方传入的 0 / False 原样保留
    return default if value is None else value


def build_upstream_payload(request: ChatCompletionRequest) -> Dict[str, Any]:
    """构建上游请求负载，缺省的可选参数使用默认值"""
    payload = {
        "model": request.model,
        "messages": request.messages,
        "temperature": _default(request.temperature, PayloadDefaults.TEMPERATURE),
        "top_p": _default(request.top_p, PayloadDefaults.TOP_P),
        "top_k": _default(request.top_k, PayloadDefaults.TOP_K),
        "max_tokens": _default(request.max_tokens, PayloadDefaults.MAX_TOKENS),
        "presence_penalty": _default(request.presence_penalty, PayloadDefaults.PRESENCE_PENALTY),
        "frequency_penalty": _default(request.frequency_penalty, PayloadDefaults.FREQUENCY_PENALTY),
        "stream": _default(request.stream, PayloadDefaults.STREAM),
    }

    # 仅在提供了工具时附加工具相关字段
    if request.tools:
        payload["tools"] = request.tools
        if request.tool_choice is not None:
            payload["tool_choice"] = request.tool_choice

    return payload
