"""
连接设置存储模块

把命名的连接设置（profile）保存在用户配置目录下的 TOML 文件中，
敏感字段使用 CryptoManager 加密，密钥保存在同目录的 encryption.key 文件中。

文件结构::

    version = "1.0.0"

    [profiles.local]
    vendor = "SQLite"
    path = "/data/app.db"

    [profiles.prod]
    vendor = "MySQL"
    version = 8
    host = "db.internal"
    password = "gAAAAAB..."

    [metadata]
    created = "..."
    last_modified = "..."
"""

import tomllib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli_w

from ..utils.logging_utils import get_logger
from ..utils.path_utils import PathHelper
from .crypto import CryptoManager
from .exceptions import ConfigError, CryptoError

logger = get_logger(__name__)

CONFIG_VERSION = "1.0.0"
KEY_FILE_NAME = "encryption.key"
SENSITIVE_FIELDS = frozenset({"password", "secret", "token", "passphrase"})


def _now() -> str:
    return datetime.now().astimezone().isoformat()


class SettingsStore:
    """
    连接设置存储

    Example:
        >>> store = SettingsStore()
        >>> store.add_profile("local", {"vendor": "SQLite", "path": "/data/app.db"})
        >>> store.get_profile("local")["path"]
        '/data/app.db'
    """

    def __init__(
        self,
        app_name: str = "db_core",
        config_file: str = "settings.toml",
        config_dir: Optional[Path] = None,
    ) -> None:
        """
        初始化设置存储，文件和密钥不存在时自动创建

        Args:
            app_name: 应用名称，决定默认配置目录
            config_file: 设置文件名称
            config_dir: 自定义配置目录

        Raises:
            ConfigError: 无法创建或读取设置文件、密钥文件时
        """
        self.app_name = app_name
        self.config_dir = Path(config_dir) if config_dir else PathHelper.get_user_config_dir(app_name)
        self.config_path = self.config_dir / config_file
        self.key_path = self.config_dir / KEY_FILE_NAME

        try:
            PathHelper.ensure_dir_exists(self.config_dir)
            if not self.config_path.exists():
                self._create_default_config()
            self.crypto = self._load_or_create_crypto()
        except OSError as e:
            logger.error(f"初始化设置文件失败: {str(e)}")
            raise ConfigError(f"设置文件初始化失败: {str(e)}", config_file=str(self.config_path))

    def _create_default_config(self) -> None:
        timestamp = _now()
        self._save_config(
            {
                "version": CONFIG_VERSION,
                "profiles": {},
                "metadata": {"created": timestamp, "last_modified": timestamp},
            }
        )
        logger.info(f"创建默认设置文件: {self.config_path}")

    def _load_or_create_crypto(self) -> CryptoManager:
        if self.key_path.exists():
            try:
                with open(self.key_path, "rb") as f:
                    key_data = tomllib.load(f)
                crypto = CryptoManager.from_saved_key(
                    key_data["password"],
                    key_data["salt"],
                    key_data.get("iterations", CryptoManager.DEFAULT_ITERATIONS),
                )
            except (tomllib.TOMLDecodeError, KeyError, CryptoError) as e:
                logger.error(f"加载加密密钥失败: {str(e)}")
                raise ConfigError(f"加密密钥加载失败: {str(e)}", config_file=str(self.key_path))
            logger.debug("加密密钥加载成功")
            return crypto

        crypto = CryptoManager()
        with open(self.key_path, "wb") as f:
            f.write(tomli_w.dumps(crypto.get_key_info()).encode("utf-8"))
        logger.info(f"新加密密钥创建成功: {self.key_path}")
        return crypto

    def _load_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, "rb") as f:
                config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"加载设置文件失败: {str(e)}")
            raise ConfigError(f"设置文件加载失败: {str(e)}", config_file=str(self.config_path))
        config.setdefault("profiles", {})
        config.setdefault("metadata", {})
        return config

    def _save_config(self, config: Dict[str, Any]) -> None:
        config.setdefault("metadata", {})["last_modified"] = _now()
        try:
            content = tomli_w.dumps(config)
        except TypeError as e:
            raise ConfigError(f"设置包含无法保存的值: {str(e)}", config_file=str(self.config_path))
        try:
            with open(self.config_path, "wb") as f:
                f.write(content.encode("utf-8"))
        except OSError as e:
            logger.error(f"保存设置文件失败: {str(e)}")
            raise ConfigError(f"设置文件保存失败: {str(e)}", config_file=str(self.config_path))

    def add_profile(self, name: str, settings: Dict[str, Any]) -> None:
        """
        添加设置，敏感字段加密保存

        Raises:
            ConfigError: 名称为空或已存在时
        """
        if not name:
            raise ConfigError("设置名称不能为空")

        config = self._load_config()
        if name in config["profiles"]:
            raise ConfigError(f"设置已存在: {name}", config_key=name)

        config["profiles"][name] = self._encrypt_settings(settings)
        self._save_config(config)
        logger.info(f"设置已添加: {name}")

    def get_profile(self, name: str) -> Dict[str, Any]:
        """
        获取设置（敏感字段自动解密）

        Raises:
            ConfigError: 设置不存在或敏感字段无法解密时
        """
        config = self._load_config()
        if name not in config["profiles"]:
            raise ConfigError(f"设置不存在: {name}", config_key=name)

        settings = dict(config["profiles"][name])
        for key in SENSITIVE_FIELDS & settings.keys():
            if settings[key]:
                try:
                    settings[key] = self.crypto.decrypt(settings[key])
                except CryptoError as e:
                    raise ConfigError(f"设置 {name} 的字段 {key} 无法解密: {e.message}", config_key=key)

        logger.debug(f"设置已获取: {name}")
        return settings

    def update_profile(self, name: str, settings: Dict[str, Any]) -> None:
        """
        替换已有设置

        新设置加密完成后一次写入，任何步骤失败时原设置保持不变。

        Raises:
            ConfigError: 设置不存在时
        """
        config = self._load_config()
        if name not in config["profiles"]:
            raise ConfigError(f"设置不存在: {name}", config_key=name)

        config["profiles"][name] = self._encrypt_settings(settings)
        self._save_config(config)
        logger.info(f"设置已更新: {name}")

    def remove_profile(self, name: str) -> None:
        """
        删除设置

        Raises:
            ConfigError: 设置不存在时
        """
        config = self._load_config()
        if name not in config["profiles"]:
            raise ConfigError(f"设置不存在: {name}", config_key=name)
        del config["profiles"][name]
        self._save_config(config)
        logger.info(f"设置已删除: {name}")

    def _encrypt_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(settings)
        for key in SENSITIVE_FIELDS & stored.keys():
            if stored[key]:
                stored[key] = self.crypto.encrypt(str(stored[key]))
        return stored

    def list_profiles(self) -> List[str]:
        return list(self._load_config()["profiles"].keys())

    def profile_exists(self, name: str) -> bool:
        return name in self._load_config()["profiles"]
