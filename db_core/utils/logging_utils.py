"""
日志配置模块

为数据库核心层提供统一的日志配置和管理功能，封装Python标准库logging模块，
支持文件轮转输出和控制台输出。

主要功能：
- setup_logging: 快速配置日志系统
- get_logger: 获取指定名称的logger
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from .path_utils import PathHelper

DEFAULT_APP_NAME = "db_core"

# 默认日志格式 - 包含时间、模块名、级别、消息和源码位置
DEFAULT_LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s "
    + "[%(filename)s:%(lineno)d]"
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(
    app_name: str = DEFAULT_APP_NAME,
    level: str = "INFO",
    log_to_console: bool = False,
    log_to_file: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    log_format: str | None = None,
    log_dir: str | None = None,
) -> logging.Logger:
    """
    配置并初始化应用程序的日志系统

    logger名称与包名一致时，包内所有模块通过 get_logger(__name__)
    获取的子logger都会继承此处的handler。

    Args:
        app_name (str): 应用名称，用于日志目录、日志文件和logger名称
        level (str): 日志级别，可选值：DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_to_console (bool): 是否输出到控制台（stderr）
        log_to_file (bool): 是否输出到文件
        max_file_size (int): 单个日志文件最大大小（字节）
        backup_count (int): 保留的备份日志文件数量
        log_format (str | None): 自定义日志格式字符串
        log_dir (str | None): 自定义日志目录，为None时使用用户配置目录下的logs

    Returns:
        logging.Logger: 配置好的logger实例

    Raises:
        ValueError: 当日志级别无效或未启用任何输出方式时
        OSError: 当无法创建日志目录或文件时

    Example:
        >>> logger = setup_logging("db_core", "DEBUG", log_to_console=True)
        >>> logger.info("应用程序启动成功")
    """
    log_level = _validate_log_level(level)

    if not log_to_file and not log_to_console:
        raise ValueError("至少需要启用一种日志输出方式（控制台或文件）")

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)

    # 清除已有的handler，避免重复配置导致的重复日志
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    log_file = None
    if log_to_file:
        if log_dir is None:
            log_dir_path = PathHelper.get_user_config_dir(app_name) / "logs"
        else:
            log_dir_path = Path(log_dir)

        try:
            log_dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OSError(f"无法创建日志目录 {log_dir_path}: {str(e)}")

        log_file = log_dir_path / f"{app_name}.log"
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                filename=str(log_file),
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            raise OSError(f"无法创建日志文件 {log_file}: {str(e)}")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        logger.addHandler(file_handler)

    if log_to_console:
        # CLI的标准输出留给命令结果
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        logger.addHandler(console_handler)

    logger.debug(
        f"日志系统初始化完成 - 应用: {app_name}, "
        f"级别: {level.upper()}, 日志文件: {log_file}"
    )
    return logger


def _validate_log_level(level: str) -> int:
    """
    验证并转换日志级别字符串为对应的logging常量

    Raises:
        ValueError: 当日志级别无效时抛出
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(f"无效的日志级别: '{level}'，有效值为: {VALID_LOG_LEVELS}")
    return LOG_LEVEL_MAP[level_upper]


def get_logger(name: str) -> logging.Logger:
    """
    获取指定名称的logger实例

    建议在模块级别使用：logger = get_logger(__name__)
    """
    return logging.getLogger(name)
