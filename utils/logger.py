"""日志工具模块

提供带时间戳、级别标识和颜色的日志输出，支持按最低级别过滤。
"""

import sys
from datetime import datetime
from enum import Enum
from typing import Union


class LogLevel(Enum):
    """日志级别枚举"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


# 级别过滤时的优先级，SUCCESS 与 INFO 同级
_PRIORITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.SUCCESS: 20,
    LogLevel.WARNING: 30,
    LogLevel.ERROR: 40,
}


class Logger:
    """日志记录器

    DEBUG/INFO/SUCCESS 输出到标准输出，WARNING/ERROR 输出到标准错误。
    """

    _COLORS = {
        LogLevel.DEBUG: "\033[36m",  # 青色
        LogLevel.INFO: "\033[37m",  # 白色
        LogLevel.WARNING: "\033[33m",  # 黄色
        LogLevel.ERROR: "\033[31m",  # 红色
        LogLevel.SUCCESS: "\033[32m",  # 绿色
    }

    _RESET = "\033[0m"

    def __init__(self, name: str = "KittiViewer", enable_color: bool = True, level: LogLevel = LogLevel.INFO):
        """初始化日志记录器

        Args:
            name: 日志记录器名称
            enable_color: 是否启用颜色输出
            level: 最低输出级别
        """
        self.name = name
        self.enable_color = enable_color
        self.level = level

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """设置最低输出级别，接受枚举或级别名称"""
        if isinstance(level, str):
            try:
                level = LogLevel[level.upper()]
            except KeyError:
                raise ValueError(f"未知的日志级别: {level}")
        self.level = level

    def is_enabled(self, level: LogLevel) -> bool:
        return _PRIORITY[level] >= _PRIORITY[self.level]

    def _format_message(self, level: LogLevel, message: str) -> str:
        timestamp = datetime.now().strftime("%H:%M:%S")
        body = f"[{timestamp}] {level.value:>7}: {message}"
        if self.enable_color:
            return f"{self._COLORS.get(level, '')}{body}{self._RESET}"
        return body

    def log(self, level: LogLevel, message: str) -> None:
        """输出指定级别的日志

        Args:
            level: 日志级别
            message: 日志消息
        """
        if not self.is_enabled(level):
            return
        stream = sys.stderr if level in (LogLevel.WARNING, LogLevel.ERROR) else sys.stdout
        print(self._format_message(level, message), file=stream)

    def debug(self, message: str) -> None:
        self.log(LogLevel.DEBUG, message)

    def info(self, message: str) -> None:
        self.log(LogLevel.INFO, message)

    def warning(self, message: str) -> None:
        self.log(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.log(LogLevel.ERROR, message)

    def success(self, message: str) -> None:
        self.log(LogLevel.SUCCESS, message)


# 创建默认的日志记录器实例
default_logger = Logger()


def debug(message: str) -> None:
    default_logger.debug(message)


def info(message: str) -> None:
    default_logger.info(message)


def warning(message: str) -> None:
    default_logger.warning(message)


def error(message: str) -> None:
    default_logger.error(message)


def success(message: str) -> None:
    default_logger.success(message)
