"""
观测钩子模块
中继处理器在关键节点调用观测者，观测结果只写日志，不影响请求和响应
"""
import math
import re
import time
import logging
from typing import Any, Dict, List, Optional

from src.constants import LogMessages, NumericConstants, ReflectionConstants, StreamConstants
from src.models import ChatCompletionRequest
from src.utils import content_to_text, safe_str

logger = logging.getLogger(__name__)


class StreamStats:
    """单个流式请求的统计状态"""

    def __init__(self, request: ChatCompletionRequest, is_cod: bool = False):
        self.request = request
        self.is_cod = is_cod
        self.estimated_tokens = 0
        self.chunk_count = 0
        self.last_reflection_time = time.monotonic()


class RelayObserver:
    """观测者基类，所有钩子默认为空操作"""

    def on_request(self, request: ChatCompletionRequest) -> None:
        pass

    def start_stream(self, request: ChatCompletionRequest) -> StreamStats:
        return StreamStats(request)

    def on_stream_chunk(self, stats: StreamStats, text: str) -> None:
        pass

    def on_stream_complete(self, stats: StreamStats) -> None:
        pass

    def on_stream_interrupted(self, stats: StreamStats, exc: BaseException) -> None:
        pass

    def on_client_disconnect(self, stats: StreamStats) -> None:
        pass

    def on_completion(self, request: ChatCompletionRequest, data: Any) -> None:
        pass


class NullObserver(RelayObserver):
    """不做任何记录的观测者"""


def safe_notify(hook, *args, default=None):
    """调用观测钩子，钩子抛出的异常只记录日志"""
    try:
        return hook(*args)
    except Exception as e:
        logger.warning(LogMessages.OBSERVER_FAILED.format(
            getattr(hook, "__name__", safe_str(hook)), safe_str(e)
        ))
        return default


def has_reflection_markers(messages: Optional[List[Any]]) -> bool:
    """判断消息中是否包含 Chain of Draft 反思标记"""
    for message in messages or []:
        if not isinstance(message, dict):
            continue
        text = content_to_text(message.get("content"))
        if any(marker in text for marker in ReflectionConstants.PROMPT_MARKERS):
            return True
    return False


def last_message_preview(messages: Optional[List[Any]]) -> str:
    if not messages or not isinstance(messages[-1], dict):
        return NumericConstants.PREVIEW_SUFFIX
    text = content_to_text(messages[-1].get("content"))
    return text[:NumericConstants.MESSAGE_PREVIEW_LENGTH] + NumericConstants.PREVIEW_SUFFIX


def estimate_tokens(text: str) -> int:
    # 粗略估计：约4个字符一个token
    return math.ceil(len(text) / StreamConstants.CHARS_PER_TOKEN)


def analyze_response_content(content: str) -> Dict[str, Any]:
    """统计响应内容中的反思块数量"""
    embedded = len(re.findall(ReflectionConstants.EMBEDDED_REFLECTION_PATTERN, content, re.IGNORECASE))
    meta = len(re.findall(ReflectionConstants.META_ANALYSIS_PATTERN, content, re.IGNORECASE))
    final = len(re.findall(ReflectionConstants.FINAL_REFLECTION_PATTERN, content, re.IGNORECASE))
    return {
        "embeddedReflections": embedded,
        "metaAnalysisBlocks": meta,
        "finalReflections": final,
        # 多个反思块说明反思被正确嵌入
        "hasProperEmbedding": embedded > 1,
    }


def _assistant_content(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content else None


class ReflectionObserver(RelayObserver):
    """记录 Chain of Draft 反思提示的请求与响应情况"""

    def on_request(self, request: ChatCompletionRequest) -> None:
        logger.info(LogMessages.COD_REQUEST.format({
            "model": request.model,
            "messageCount": len(request.messages or []),
            "stream": request.is_stream,
            "toolsEnabled": request.tools_enabled,
            "isEnhancedAdvancedCoD": has_reflection_markers(request.messages),
            "lastMessagePreview": last_message_preview(request.messages),
        }))

    def start_stream(self, request: ChatCompletionRequest) -> StreamStats:
        return StreamStats(request, is_cod=has_reflection_markers(request.messages))

    def on_stream_chunk(self, stats: StreamStats, text: str) -> None:
        stats.chunk_count += 1
        if stats.is_cod and ReflectionConstants.STREAM_MARKER in text:
            now = time.monotonic()
            elapsed_ms = int((now - stats.last_reflection_time) * 1000)
            logger.info(LogMessages.COD_STREAM_REFLECTION.format(stats.estimated_tokens, elapsed_ms))
            stats.last_reflection_time = now
        stats.estimated_tokens += estimate_tokens(text)

    def on_stream_complete(self, stats: StreamStats) -> None:
        logger.info(LogMessages.COD_STREAM_COMPLETE.format(stats.estimated_tokens))

    def on_completion(self, request: ChatCompletionRequest, data: Any) -> None:
        content = _assistant_content(data)
        if content is None or not has_reflection_markers(request.messages):
            return

        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        analysis = {
            "totalTokens": usage.get("total_tokens") or ReflectionConstants.UNKNOWN,
            "completionTokens": usage.get("completion_tokens") or ReflectionConstants.UNKNOWN,
            **analyze_response_content(content),
        }
        logger.info(LogMessages.COD_RESPONSE_ANALYSIS.format(analysis))
        logger.info(LogMessages.COD_RESPONSE_PREVIEW.format(
            content[:NumericConstants.RESPONSE_PREVIEW_LENGTH] + NumericConstants.PREVIEW_SUFFIX
        ))
