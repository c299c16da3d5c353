"""
测试公共配置
"""

from pathlib import Path

import pytest

RESOURCES = Path(__file__).parent / "resources"
QUERIES = RESOURCES / "queries"


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """把用户配置目录重定向到临时目录"""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("DB_CORE_CONFIG_DIR", str(config_dir))
    return config_dir


@pytest.fixture
def resources() -> Path:
    return RESOURCES


@pytest.fixture
def queries_root() -> Path:
    return QUERIES
