import logging
import sys


def setup_logging(level=logging.INFO):
    """
    配置全局日志格式
    格式: 2024-03-21 10:00:00.123 | INFO    | module:function:line - message
    """
    log_format = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(fmt=log_format, datefmt=date_format)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()

    # 清除现有的 handlers 避免重复打印
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # 第三方库只保留告警
    for noisy in ("uvicorn.access", "httpcore", "httpx", "openai", "stripe", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        if uvicorn_logger.handlers:
            uvicorn_logger.handlers[0].setFormatter(formatter)
        else:
            uvicorn_logger.addHandler(handler)

    logging.info("📒 Logging initialized")
    return root_logger
