"""
工具函数模块
包含通用的工具函数
"""
import logging
import sys


def safe_str(obj) -> str:
    """
    安全地将对象转换为字符串，处理Unicode编码问题

    Args:
        obj: 需要转换为字符串的对象

    Returns:
        str: 安全转换后的字符串
    """
    try:
        if isinstance(obj, str):
            return obj
        elif isinstance(obj, bytes):
            return obj.decode('utf-8', errors='replace')
        else:
            return str(obj)
    except Exception:
        # 如果所有转换都失败，返回repr形式
        try:
            return repr(obj)
        except Exception:
            return '<无法转换的对象>'


def content_to_text(content) -> str:
    """
    提取消息内容中的文本，用于日志和标记检测

    字符串原样返回；列表内容只取 text 部分；其他类型返回空字符串
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        text_parts = []
        for part in content:
            if isinstance(part, str):
                text_parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                text = part.get("text")
                if isinstance(text, str):
                    text_parts.append(text)
        return " ".join(text_parts)
    return ""


def configure_logging_encoding():
    """
    配置日志系统以支持UTF-8编码，避免ASCII编码错误
    """
    try:
        # 设置stdout和stderr的编码
        if hasattr(sys.stdout, 'reconfigure'):
            sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        if hasattr(sys.stderr, 'reconfigure'):
            sys.stderr.reconfigure(encoding='utf-8', errors='replace')

        # 为现有的日志处理器设置编码
        root_logger = logging.getLogger()
        for handler in root_logger.handlers:
            if hasattr(handler, 'stream'):
                if hasattr(handler.stream, 'reconfigure'):
                    handler.stream.reconfigure(encoding='utf-8', errors='replace')

    except Exception as e:
        # 如果配置失败，记录错误但不影响程序运行
        print(f"配置日志编码时出错: {e}")
