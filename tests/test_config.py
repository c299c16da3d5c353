"""
连接设置存储测试
"""

import tomllib
from unittest.mock import patch

import pytest

from db_core.core.config import KEY_FILE_NAME, SettingsStore
from db_core.core.exceptions import ConfigError, CryptoError


class TestSettingsStore:
    """SettingsStore测试类"""

    @pytest.fixture(autouse=True)
    def setup_store(self, isolated_config_dir):
        """在隔离的配置目录中创建存储"""
        self.store = SettingsStore(config_file="test_settings.toml")

    def test_default_location(self, isolated_config_dir):
        """测试默认使用用户配置目录并创建文件和密钥"""
        assert self.store.config_dir == isolated_config_dir / "db_core"
        assert self.store.config_path.exists()
        assert (self.store.config_dir / KEY_FILE_NAME).exists()

    def test_add_get_profile(self):
        """测试添加和获取设置"""
        settings = {
            "vendor": "MySQL",
            "version": 8,
            "host": "localhost",
            "database": "app",
            "user": "root",
            "password": "test_password",
        }

        self.store.add_profile("prod", settings)

        assert self.store.get_profile("prod") == settings

    def test_password_encrypted_on_disk(self):
        """测试敏感字段加密保存"""
        self.store.add_profile("prod", {"vendor": "MySQL", "password": "test_password"})

        with open(self.store.config_path, "rb") as f:
            raw = tomllib.load(f)

        stored = raw["profiles"]["prod"]["password"]
        assert stored != "test_password"
        assert stored.startswith("gAAAAA")
        assert raw["profiles"]["prod"]["vendor"] == "MySQL"

    def test_list_profiles(self):
        """测试列出设置"""
        self.store.add_profile("a", {"vendor": "SQLite", "path": "/tmp/a.db"})
        self.store.add_profile("b", {"vendor": "SQLite", "path": "/tmp/b.db"})

        assert sorted(self.store.list_profiles()) == ["a", "b"]
        assert self.store.profile_exists("a")
        assert not self.store.profile_exists("c")

    def test_remove_profile(self):
        """测试删除设置"""
        self.store.add_profile("a", {"vendor": "SQLite"})

        self.store.remove_profile("a")

        assert self.store.list_profiles() == []
        with pytest.raises(ConfigError):
            self.store.remove_profile("a")

    def test_update_profile(self):
        """测试替换设置"""
        self.store.add_profile("a", {"vendor": "SQLite", "path": "/tmp/a.db"})

        self.store.update_profile("a", {"vendor": "SQLite", "path": "/tmp/b.db"})

        assert self.store.get_profile("a")["path"] == "/tmp/b.db"

    def test_update_missing_profile(self):
        """测试替换不存在的设置"""
        with pytest.raises(ConfigError) as exc_info:
            self.store.update_profile("missing", {"vendor": "SQLite"})

        assert exc_info.value.config_key == "missing"
        assert self.store.list_profiles() == []

    def test_update_failure_keeps_old_profile(self):
        """测试加密失败时原设置保持不变"""
        self.store.add_profile("a", {"vendor": "MySQL", "password": "old_password"})

        with patch.object(
            self.store.crypto, "encrypt", side_effect=CryptoError("加密失败")
        ):
            with pytest.raises(CryptoError):
                self.store.update_profile("a", {"vendor": "MySQL", "password": "new_password"})

        assert self.store.get_profile("a") == {"vendor": "MySQL", "password": "old_password"}

    def test_unsaveable_value_keeps_file(self):
        """测试无法序列化的值不会破坏已有设置文件"""
        self.store.add_profile("a", {"vendor": "SQLite", "path": "/tmp/a.db"})

        with pytest.raises(ConfigError):
            self.store.update_profile("a", {"vendor": "SQLite", "path": None})

        assert self.store.get_profile("a")["path"] == "/tmp/a.db"

    def test_duplicate_and_empty_names(self):
        """测试重复名称和空名称"""
        self.store.add_profile("a", {"vendor": "SQLite"})

        with pytest.raises(ConfigError):
            self.store.add_profile("a", {"vendor": "SQLite"})
        with pytest.raises(ConfigError):
            self.store.add_profile("", {"vendor": "SQLite"})

    def test_missing_profile(self):
        """测试获取不存在的设置"""
        with pytest.raises(ConfigError) as exc_info:
            self.store.get_profile("missing")

        assert exc_info.value.config_key == "missing"

    def test_reopen_reuses_key(self):
        """测试重新打开存储时沿用已有密钥"""
        self.store.add_profile("prod", {"vendor": "MySQL", "password": "test_password"})

        reopened = SettingsStore(config_file="test_settings.toml")

        assert reopened.get_profile("prod")["password"] == "test_password"

    def test_key_mismatch(self):
        """测试密钥文件被替换后无法解密"""
        self.store.add_profile("prod", {"vendor": "MySQL", "password": "test_password"})
        self.store.key_path.unlink()

        reopened = SettingsStore(config_file="test_settings.toml")

        with pytest.raises(ConfigError) as exc_info:
            reopened.get_profile("prod")
        assert exc_info.value.config_key == "password"

    def test_corrupted_file(self):
        """测试设置文件损坏"""
        self.store.config_path.write_text("profiles = [", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            self.store.list_profiles()

        assert exc_info.value.config_file == str(self.store.config_path)

    def test_custom_config_dir(self, tmp_path):
        """测试自定义配置目录"""
        store = SettingsStore(config_dir=tmp_path / "custom")

        assert store.config_path == tmp_path / "custom" / "settings.toml"
        assert store.config_path.exists()


if __name__ == "__main__":
    pytest.main()
