"""
Chain of Draft 中继服务
将聊天补全请求转发到 Fireworks API，支持缓冲和流式响应
"""
import sys
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from src.config import Config
from src.exceptions import RelayError
from src.relay_handler import RelayHandler, error_response
from src.utils import configure_logging_encoding, safe_str

# 初始化配置
try:
    Config.setup_logging()
    Config.validate()
    # 配置日志编码以支持Unicode字符
    configure_logging_encoding()
except Exception as e:
    print(f"配置错误: {safe_str(e)}")
    sys.exit(1)

logger = logging.getLogger(__name__)

RELAY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("CoD Relay 启动中...")
    yield
    logger.info("CoD Relay 关闭中...")


def create_app(config=Config, relay_handler: Optional[RelayHandler] = None) -> FastAPI:
    """创建FastAPI应用，所有路径和方法都交给中继处理器"""
    relay_handler = relay_handler or RelayHandler(config)

    app = FastAPI(
        title="CoD Relay",
        description="Fireworks 聊天补全中继服务",
        version="1.0.0",
        lifespan=lifespan,
        # 文档路由会抢在通配路由之前匹配
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )

    @app.exception_handler(RelayError)
    async def relay_exception_handler(request: Request, exc: RelayError):
        """处理自定义中继异常"""
        return error_response(exc)

    @app.api_route("/{full_path:path}", methods=RELAY_METHODS)
    async def relay(request: Request):
        """处理聊天补全请求"""
        return await relay_handler.handle(request)

    return app


app = create_app(Config)

if __name__ == "__main__":
    import uvicorn

    # 配置日志级别
    log_level = "debug" if Config.DEBUG_LOGGING else "info"

    logger.info(f"启动服务器: {Config.HOST}:{Config.PORT}")
    logger.info(f"上游地址: {Config.FIREWORKS_API_URL}")
    logger.info(f"CoD 日志: {Config.COD_LOGGING}")

    uvicorn.run(
        app,
        host=Config.HOST,
        port=Config.PORT,
        access_log=Config.ENABLE_ACCESS_LOG,
        log_level=log_level
    )
