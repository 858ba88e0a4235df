"""
上游请求模块
负责与 Fireworks API 的HTTP交互以及流式字节转发
"""
import codecs
import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

import httpx

from src.constants import APIConstants, ErrorMessages, HeaderConstants, LogMessages, StreamConstants
from src.exceptions import NoResponseBodyError, UpstreamError, UpstreamTimeoutError
from src.observability import NullObserver, RelayObserver, StreamStats, safe_notify
from src.utils import safe_str

logger = logging.getLogger(__name__)


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def has_body(response: httpx.Response) -> bool:
    """判断上游响应是否携带可读取的响应体"""
    if response.status_code in APIConstants.NO_BODY_STATUSES:
        return False
    return response.headers.get(HeaderConstants.CONTENT_LENGTH) != "0"


class UpstreamStream:
    """已建立的上游流式响应，转发结束后关闭连接"""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self.client = client
        self.response = response

    async def aclose(self) -> None:
        await self.response.aclose()
        await self.client.aclose()

    async def relay(
        self,
        stats: StreamStats,
        observer: Optional[RelayObserver] = None,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None
    ) -> AsyncGenerator[bytes, None]:
        """逐块原样转发上游字节，只为日志解码，不修改输出"""
        observer = observer or NullObserver()
        # 增量解码器在块之间保留被截断的多字节序列
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        try:
            async for chunk in self.response.aiter_bytes():
                if is_disconnected is not None and await is_disconnected():
                    logger.warning(LogMessages.CLIENT_DISCONNECTED)
                    safe_notify(observer.on_client_disconnect, stats)
                    return

                text = decoder.decode(chunk)
                if text:
                    safe_notify(observer.on_stream_chunk, stats, text)
                yield chunk

            tail = decoder.decode(b"", final=True)
            if tail:
                safe_notify(observer.on_stream_chunk, stats, tail)
            safe_notify(observer.on_stream_complete, stats)
        except Exception as e:
            logger.error(LogMessages.STREAM_INTERRUPTED.format(safe_str(e)))
            safe_notify(observer.on_stream_interrupted, stats, e)
            yield StreamConstants.INTERRUPTED_EVENT
        finally:
            await self.aclose()


class UpstreamClient:
    """Fireworks API 客户端，每个入站请求使用独立的连接"""

    def __init__(self, config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    def create_http_client(self) -> httpx.AsyncClient:
        """创建HTTP客户端"""
        base_kwargs = {
            "timeout": httpx.Timeout(
                self.config.REQUEST_TIMEOUT, connect=self.config.CONNECT_TIMEOUT
            ),
            "follow_redirects": True
        }
        if self.transport is not None:
            base_kwargs["transport"] = self.transport
        return httpx.AsyncClient(**base_kwargs)

    def build_headers(self, stream: bool) -> Dict[str, str]:
        """构建请求头"""
        headers = {
            HeaderConstants.AUTHORIZATION: f"{APIConstants.BEARER_PREFIX}{self.config.FIREWORKS_API_KEY}",
            HeaderConstants.CONTENT_TYPE: HeaderConstants.APPLICATION_JSON,
        }
        if stream:
            headers[HeaderConstants.ACCEPT] = HeaderConstants.TEXT_EVENT_STREAM
        return headers

    async def _raise_for_upstream_status(self, response: httpx.Response) -> None:
        if is_success(response):
            return
        await response.aread()
        error_text = response.text
        logger.error(LogMessages.UPSTREAM_ERROR.format(response.status_code, safe_str(error_text)))
        raise UpstreamError(error_text, response.status_code)

    async def complete(self, payload: Dict[str, Any]) -> Any:
        """发送非流式请求并返回解码后的JSON"""
        client = self.create_http_client()
        try:
            response = await client.post(
                self.config.FIREWORKS_API_URL,
                headers=self.build_headers(stream=False),
                json=payload
            )
            await self._raise_for_upstream_status(response)
            return response.json()
        except httpx.TimeoutException as e:
            logger.error(LogMessages.UPSTREAM_TIMEOUT.format(safe_str(e)))
            raise UpstreamTimeoutError(safe_str(e) or ErrorMessages.UPSTREAM_TIMEOUT_DETAIL)
        finally:
            await client.aclose()

    async def open_stream(self, payload: Dict[str, Any]) -> UpstreamStream:
        """发送流式请求，在转发任何字节之前检查上游状态"""
        client = self.create_http_client()
        request = client.build_request(
            "POST",
            self.config.FIREWORKS_API_URL,
            headers=self.build_headers(stream=True),
            json=payload,
            timeout=httpx.Timeout(
                self.config.STREAM_READ_TIMEOUT, connect=self.config.CONNECT_TIMEOUT
            )
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            await client.aclose()
            logger.error(LogMessages.UPSTREAM_TIMEOUT.format(safe_str(e)))
            raise UpstreamTimeoutError(safe_str(e) or ErrorMessages.UPSTREAM_TIMEOUT_DETAIL)
        except Exception:
            await client.aclose()
            raise

        stream = UpstreamStream(client, response)
        try:
            await self._raise_for_upstream_status(response)
            if not has_body(response):
                raise NoResponseBodyError()
        except Exception:
            await stream.aclose()
            raise
        return stream
