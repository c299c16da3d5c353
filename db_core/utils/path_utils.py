"""
路径处理工具模块

提供跨平台的用户配置目录获取和资源路径辅助方法。
"""

import os
import platform
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


class PathHelper:
    """
    路径辅助类

    所有方法均为静态方法，无需实例化即可使用。
    """

    @staticmethod
    def get_user_config_dir(app_name: str = "db_core") -> Path:
        """
        获取用户配置目录路径

        根据操作系统类型获取标准的用户配置目录，并创建应用特定的子目录。
        环境变量 DB_CORE_CONFIG_DIR 存在时优先使用。
        标准目录创建失败时回退到当前工作目录下的隐藏目录。

        Args:
            app_name (str): 应用名称

        Returns:
            Path: 配置目录的Path对象

        Raises:
            ValueError: 当应用名称为空或不是字符串时
            OSError: 当回退方案也无法创建目录时

        Note:
            - Windows: %APPDATA%\\{app_name}
            - macOS: ~/Library/Application Support/{app_name}
            - Linux: ~/.config/{app_name}
        """
        if not app_name or not isinstance(app_name, str):
            raise ValueError("应用名称不能为空且必须是字符串")

        override = os.environ.get("DB_CORE_CONFIG_DIR")
        system = platform.system().lower()

        try:
            if override:
                base_dir = Path(override)
            elif system == "windows":
                base_dir = Path(os.environ.get("APPDATA", Path.home()))
            elif system == "darwin":
                base_dir = Path.home() / "Library" / "Application Support"
            else:
                base_dir = Path.home() / ".config"

            config_dir = base_dir / app_name
            config_dir.mkdir(parents=True, exist_ok=True)
            return config_dir

        except OSError as e:
            fallback_dir = Path.cwd() / f".{app_name}"
            try:
                fallback_dir.mkdir(exist_ok=True)
                return fallback_dir
            except OSError:
                raise OSError(f"无法创建配置目录: {str(e)}")

    @staticmethod
    def ensure_dir_exists(dir_path: PathLike) -> Path:
        """
        确保目录存在，如果不存在则递归创建

        Raises:
            OSError: 当路径已存在但不是目录，或目录创建失败时
        """
        path = Path(dir_path)
        if path.exists() and not path.is_dir():
            raise OSError(f"路径已存在但不是目录: {path}")
        path.mkdir(parents=True, exist_ok=True)
        return path
