from pathlib import Path

import pytest

from tarkov_data import config, service
from tarkov_data.cache import CacheClient


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(config, "_settings", None)
    monkeypatch.setattr(service, "_cache", None)
    monkeypatch.setenv("TARKOV_CACHE_DIR", str(tmp_path / "default_cache"))


@pytest.fixture
def cache_client(tmp_path: Path) -> CacheClient:
    return CacheClient(tmp_path / "test_cache")
