"""
中继处理模块
接收聊天补全请求，校验后转发到 Fireworks API，并以缓冲或流式方式返回响应
"""
import logging
from typing import Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError

from src.constants import (
    APIConstants, CORS_HEADERS, ErrorMessages, HeaderConstants,
    LogMessages, STREAM_HEADERS
)
from src.exceptions import (
    BadRequestError, ConfigurationError, MethodNotAllowedError, RelayError
)
from src.models import ChatCompletionRequest, build_upstream_payload
from src.observability import (
    NullObserver, ReflectionObserver, RelayObserver, StreamStats, safe_notify
)
from src.upstream import UpstreamClient
from src.utils import safe_str

logger = logging.getLogger(__name__)


def error_response(exc: RelayError) -> JSONResponse:
    """将中继异常转换为带CORS头的JSON响应"""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=CORS_HEADERS
    )


class RelayHandler:
    """中继处理器"""

    def __init__(
        self,
        config,
        observer: Optional[RelayObserver] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        if observer is None:
            observer = ReflectionObserver() if config.COD_LOGGING else NullObserver()
        self.observer = observer
        self.upstream = UpstreamClient(config, transport)

    async def handle(self, request: Request) -> Response:
        """处理单个入站请求，所有失败都在这里转换为响应"""
        try:
            return await self._handle(request)
        except RelayError as e:
            return error_response(e)
        except Exception as e:
            logger.error(LogMessages.SERVER_ERROR.format(safe_str(e)))
            return error_response(RelayError(
                ErrorMessages.INTERNAL_ERROR, safe_str(e), APIConstants.HTTP_INTERNAL_ERROR
            ))

    async def _handle(self, request: Request) -> Response:
        # CORS预检请求
        if request.method == APIConstants.METHOD_OPTIONS:
            return Response(status_code=APIConstants.HTTP_OK, headers=CORS_HEADERS)

        if request.method != APIConstants.METHOD_POST:
            raise MethodNotAllowedError()

        if not self.config.FIREWORKS_API_KEY:
            logger.error(LogMessages.API_KEY_MISSING)
            raise ConfigurationError()

        chat_request = await self._parse_request(request)
        safe_notify(self.observer.on_request, chat_request)

        payload = build_upstream_payload(chat_request)

        if chat_request.is_stream:
            return await self._handle_stream_response(chat_request, payload, request)
        return await self._handle_non_stream_response(chat_request, payload)

    async def _parse_request(self, request: Request) -> ChatCompletionRequest:
        """解析并校验请求体，只检查必需字段是否存在"""
        try:
            body = await request.json()
        except ValueError:
            raise BadRequestError(ErrorMessages.INVALID_JSON)

        if not isinstance(body, dict):
            raise BadRequestError(ErrorMessages.INVALID_JSON)

        try:
            chat_request = ChatCompletionRequest.model_validate(body)
        except ValidationError as e:
            raise BadRequestError(safe_str(e))

        if not chat_request.has_required_fields():
            logger.error(LogMessages.MISSING_FIELDS.format(
                bool(chat_request.model), bool(chat_request.messages)
            ))
            raise BadRequestError()

        return chat_request

    async def _handle_non_stream_response(self, chat_request: ChatCompletionRequest, payload: dict) -> JSONResponse:
        """处理非流式响应，上游JSON原样返回"""
        data = await self.upstream.complete(payload)
        safe_notify(self.observer.on_completion, chat_request, data)
        return JSONResponse(status_code=APIConstants.HTTP_OK, content=data, headers=CORS_HEADERS)

    async def _handle_stream_response(
        self,
        chat_request: ChatCompletionRequest,
        payload: dict,
        request: Request
    ) -> StreamingResponse:
        """处理流式响应，上游失败在发送任何字节之前以JSON返回"""
        upstream_stream = await self.upstream.open_stream(payload)
        stats = safe_notify(self.observer.start_stream, chat_request) or StreamStats(chat_request)

        return StreamingResponse(
            upstream_stream.relay(stats, self.observer, request.is_disconnected),
            media_type=HeaderConstants.TEXT_EVENT_STREAM,
            headers=STREAM_HEADERS
        )
