"""
统一的日志处理模块
使用 loguru 提供一致的日志接口，支持日志文件输出
"""
from typing import Optional
from loguru import logger
import sys
import os
from pathlib import Path


def get_log_file_path() -> str:
    """获取日志文件路径 (LUMICUT_LOG_DIR overrides the default ~/.lumicut/logs)"""
    log_dir = Path(os.environ.get('LUMICUT_LOG_DIR', Path.home() / ".lumicut" / "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return str(log_dir / "lumicut.log")


def configure(file_logging: Optional[bool] = None):
    """
    (Re)configure the global loguru logger.

    Console gets INFO and above, the rotating file gets everything from DEBUG.
    Set LUMICUT_NO_FILE_LOG=1 to keep the file sink off (tests, read-only homes).
    """
    if file_logging is None:
        file_logging = os.environ.get('LUMICUT_NO_FILE_LOG', '') not in ('1', 'true', 'yes')

    logger.remove()

    if sys.stderr is not None:
        logger.add(
            sys.stderr,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
            level="INFO",
            colorize=True
        )

    if file_logging:
        logger.add(
            get_log_file_path(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
            rotation="1 day",
            retention="7 days",
            compression="zip",
            encoding="utf-8"
        )


class LoguruHandler:
    """
    Loguru 日志处理器包装类
    Tags every message with an identifier (export id, file name) bound
    through loguru's `bind`, so sinks can also filter on extra["file_id"].
    """

    def __init__(self, file_id: Optional[str] = None):
        self.file_id = file_id
        self._logger = logger.bind(file_id=file_id)

    def _format_message(self, message: str) -> str:
        if self.file_id:
            return f"[{self.file_id}] {message}"
        return message

    def info(self, message: str):
        self._logger.info(self._format_message(message))

    def error(self, message: str):
        self._logger.error(self._format_message(message))

    def debug(self, message: str):
        self._logger.debug(self._format_message(message))


def create_logger(file_id: Optional[str] = None) -> LoguruHandler:
    """工厂函数：创建日志处理器实例"""
    return LoguruHandler(file_id)


Logger = LoguruHandler
