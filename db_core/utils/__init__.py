"""
工具模块

提供日志配置和跨平台路径处理功能。

使用示例：
    >>> from db_core.utils import get_logger, setup_logging
    >>> setup_logging(level="INFO", log_to_console=True, log_to_file=False)
    >>> logger = get_logger(__name__)
"""

from .logging_utils import get_logger, setup_logging
from .path_utils import PathHelper

__all__ = [
    # ==================== 日志管理模块 ====================
    "setup_logging",
    "get_logger",
    # ==================== 路径处理模块 ====================
    "PathHelper",
]
