"""
配置管理模块
统一管理所有环境变量和配置项
"""
import os
import logging
from dotenv import load_dotenv

from src.constants import APIConstants, LogMessages

# 加载环境变量
load_dotenv()

logger = logging.getLogger(__name__)


class Config:
    """应用配置类"""

    # 上游认证配置
    FIREWORKS_API_KEY: str = os.getenv("FIREWORKS_API_KEY", "")
    FIREWORKS_API_URL: str = os.getenv("FIREWORKS_API_URL", APIConstants.FIREWORKS_API_URL)

    # 服务器配置
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8001"))

    # 功能开关
    COD_LOGGING: bool = os.getenv("COD_LOGGING", "true").lower() == "true"
    DEBUG_LOGGING: bool = os.getenv("DEBUG_LOGGING", "false").lower() == "true"
    ENABLE_ACCESS_LOG: bool = os.getenv("ENABLE_ACCESS_LOG", "true").lower() == "true"

    # 超时配置（秒）
    CONNECT_TIMEOUT: float = float(os.getenv("CONNECT_TIMEOUT", "10"))
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "120"))
    STREAM_READ_TIMEOUT: float = float(os.getenv("STREAM_READ_TIMEOUT", "300"))

    # 日志配置
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """验证配置项，缺少API密钥只告警，由每个请求返回500"""
        if not cls.FIREWORKS_API_KEY:
            logger.warning(LogMessages.API_KEY_MISSING)

        # 验证数值范围
        if cls.PORT < 1 or cls.PORT > 65535:
            raise ValueError(f"错误：PORT 值 {cls.PORT} 不在有效范围内 (1-65535)")

        for name in ("CONNECT_TIMEOUT", "REQUEST_TIMEOUT", "STREAM_READ_TIMEOUT"):
            value = getattr(cls, name)
            if value <= 0:
                raise ValueError(f"错误：{name} 必须大于0，当前值: {value}")

    @classmethod
    def setup_logging(cls) -> None:
        """设置日志配置"""
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR
        }

        log_level = level_map.get(cls.LOG_LEVEL, logging.INFO)
        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
