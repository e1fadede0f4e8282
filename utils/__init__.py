"""工具模块

提供配置管理、日志记录、几何变换和数据结构等通用工具功能。
"""

from . import logger
from .config import Config
from .logger import Logger, default_logger

__all__ = [
    "Config",
    "Logger",
    "default_logger",
    "logger",
]
