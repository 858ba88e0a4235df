"""
常量定义模块
统一管理所有魔法数字和硬编码字符串
"""

# API相关常量
class APIConstants:
    FIREWORKS_API_URL = "https://api.fireworks.ai/inference/v1/chat/completions"

    # HTTP状态码
    HTTP_OK = 200
    HTTP_BAD_REQUEST = 400
    HTTP_METHOD_NOT_ALLOWED = 405
    HTTP_INTERNAL_ERROR = 500
    HTTP_GATEWAY_TIMEOUT = 504

    # 上游无响应体的状态码
    NO_BODY_STATUSES = (204, 205, 304)

    # 认证相关
    BEARER_PREFIX = "Bearer "

    # 允许的HTTP方法
    METHOD_POST = "POST"
    METHOD_OPTIONS = "OPTIONS"


# 生成参数默认值
class PayloadDefaults:
    TEMPERATURE = 0.6
    TOP_P = 1
    TOP_K = 40
    MAX_TOKENS = 8192
    PRESENCE_PENALTY = 0
    FREQUENCY_PENALTY = 0
    STREAM = False


# 流式响应相关常量
class StreamConstants:
    INTERRUPTED_EVENT = b'data: {"error": "Streaming interrupted"}\n\n'
    CHARS_PER_TOKEN = 4


# 错误消息常量
class ErrorMessages:
    METHOD_NOT_ALLOWED = "Method not allowed"
    BAD_REQUEST = "Bad request"
    MISSING_FIELDS = "Missing required fields: model and messages"
    INVALID_JSON = "Request body must be a valid JSON object"
    CONFIGURATION_ERROR = "Server configuration error"
    API_KEY_MISSING = "API key not configured. Please check server environment variables."
    API_REQUEST_FAILED = "API request failed"
    NO_RESPONSE_BODY = "No response body from API"
    UPSTREAM_TIMEOUT = "Upstream timeout"
    UPSTREAM_TIMEOUT_DETAIL = "Upstream request timed out"
    INTERNAL_ERROR = "Internal server error"


# 日志消息常量
class LogMessages:
    API_KEY_MISSING = "FIREWORKS_API_KEY 环境变量未设置"
    MISSING_FIELDS = "请求缺少必需字段: model={}, messages={}"
    UPSTREAM_ERROR = "Fireworks API 错误: {} {}"
    UPSTREAM_TIMEOUT = "上游请求超时: {}"
    STREAM_INTERRUPTED = "流式传输中断: {}"
    CLIENT_DISCONNECTED = "客户端已断开连接，停止读取上游数据"
    SERVER_ERROR = "服务器错误: {}"
    OBSERVER_FAILED = "观测钩子 {} 执行失败: {}"

    # CoD相关日志
    COD_REQUEST = "处理 CoD 请求: {}"
    COD_STREAM_REFLECTION = "流中检测到 CoD 反思，约第 {} 个token，距上次 {}ms"
    COD_STREAM_COMPLETE = "流式传输完成，估计处理token数: {}"
    COD_RESPONSE_ANALYSIS = "CoD 响应分析: {}"
    COD_RESPONSE_PREVIEW = "响应结构预览: {}"


# HTTP头常量
class HeaderConstants:
    AUTHORIZATION = "Authorization"
    CONTENT_TYPE = "Content-Type"
    CONTENT_LENGTH = "Content-Length"
    ACCEPT = "Accept"
    CACHE_CONTROL = "Cache-Control"
    CONNECTION = "Connection"
    X_ACCEL_BUFFERING = "X-Accel-Buffering"
    ALLOW_ORIGIN = "Access-Control-Allow-Origin"
    ALLOW_METHODS = "Access-Control-Allow-Methods"
    ALLOW_HEADERS = "Access-Control-Allow-Headers"

    # 值
    APPLICATION_JSON = "application/json"
    TEXT_EVENT_STREAM = "text/event-stream"
    NO_CACHE = "no-cache"
    KEEP_ALIVE = "keep-alive"
    NO_BUFFERING = "no"
    ANY_ORIGIN = "*"
    CORS_METHODS = "GET, POST, OPTIONS"
    CORS_HEADERS = "Content-Type, Authorization"


CORS_HEADERS = {
    HeaderConstants.ALLOW_ORIGIN: HeaderConstants.ANY_ORIGIN,
    HeaderConstants.ALLOW_METHODS: HeaderConstants.CORS_METHODS,
    HeaderConstants.ALLOW_HEADERS: HeaderConstants.CORS_HEADERS,
}

STREAM_HEADERS = {
    HeaderConstants.CACHE_CONTROL: HeaderConstants.NO_CACHE,
    HeaderConstants.CONNECTION: HeaderConstants.KEEP_ALIVE,
    HeaderConstants.X_ACCEL_BUFFERING: HeaderConstants.NO_BUFFERING,
    **CORS_HEADERS,
}


# Chain of Draft 反思标记
class ReflectionConstants:
    PROMPT_MARKERS = (
        "EMBEDDED REFLECTION",
        "TOKEN-BASED REFLECTION",
        "REFLECTION AFTER",
        "Chain of Draft",
        "~150 tokens",
        "embed reflections immediately",
    )
    STREAM_MARKER = "REFLECTION"

    # 响应分析正则
    EMBEDDED_REFLECTION_PATTERN = r"\*\*(?:EMBEDDED\s+)?(?:TOKEN-BASED\s+)?REFLECTION"
    META_ANALYSIS_PATTERN = r"\*\*META[_\s-]*ANALYSIS"
    FINAL_REFLECTION_PATTERN = r"\*\*FINAL\s+(?:COMPREHENSIVE\s+)?REFLECTION"

    UNKNOWN = "unknown"


# 数值常量
class NumericConstants:
    # 内容预览长度
    MESSAGE_PREVIEW_LENGTH = 100
    RESPONSE_PREVIEW_LENGTH = 200
    PREVIEW_SUFFIX = "..."
