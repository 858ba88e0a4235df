"""
自定义异常类模块
统一管理所有自定义异常
"""
from typing import Dict, Optional

from src.constants import APIConstants, ErrorMessages


class RelayError(Exception):
    """中继服务基础异常类"""
    def __init__(self, error: str, message: Optional[str] = None, status_code: int = 500):
        self.error = error
        self.message = message
        self.status_code = status_code
        super().__init__(message or error)

    def to_dict(self) -> Dict[str, str]:
        body = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        return body


class ConfigurationError(RelayError):
    """配置错误异常"""
    def __init__(self, message: str = ErrorMessages.API_KEY_MISSING):
        super().__init__(ErrorMessages.CONFIGURATION_ERROR, message, APIConstants.HTTP_INTERNAL_ERROR)


class BadRequestError(RelayError):
    """请求参数错误异常"""
    def __init__(self, message: str = ErrorMessages.MISSING_FIELDS):
        super().__init__(ErrorMessages.BAD_REQUEST, message, APIConstants.HTTP_BAD_REQUEST)


class MethodNotAllowedError(RelayError):
    """请求方法不允许"""
    def __init__(self):
        super().__init__(ErrorMessages.METHOD_NOT_ALLOWED, None, APIConstants.HTTP_METHOD_NOT_ALLOWED)


class UpstreamError(RelayError):
    """上游服务错误异常，状态码和响应体原样转发"""
    def __init__(self, message: str, status_code: int):
        super().__init__(ErrorMessages.API_REQUEST_FAILED, message, status_code)


class UpstreamTimeoutError(RelayError):
    """上游超时异常"""
    def __init__(self, message: str = ErrorMessages.UPSTREAM_TIMEOUT_DETAIL):
        super().__init__(ErrorMessages.UPSTREAM_TIMEOUT, message, APIConstants.HTTP_GATEWAY_TIMEOUT)


class NoResponseBodyError(RelayError):
    """上游成功但没有响应体"""
    def __init__(self):
        super().__init__(ErrorMessages.NO_RESPONSE_BODY, None, APIConstants.HTTP_INTERNAL_ERROR)
