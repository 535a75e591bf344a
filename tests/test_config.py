"""Tests for environment configuration and registry selection"""
import pytest

from services.share_registry import MemoryShareRegistry, MongoShareRegistry
from utils.config import Settings, load_settings
from utils.database import build_registry


class TestLoadSettings:
    def test_defaults_to_memory_without_mongo(self, monkeypatch):
        for name in ("MONGO_URL", "REGISTRY_BACKEND", "SHARE_TTL_MINUTES", "SUPERSEDE_OLD_CODES"):
            monkeypatch.delenv(name, raising=False)

        config = load_settings()
        assert config.registry_backend == "memory"
        assert config.share_ttl_minutes is None
        assert config.supersede_old_codes is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("MONGO_URL", " mongodb://localhost:27017 ")
        monkeypatch.setenv("SHARE_TTL_MINUTES", "60")
        monkeypatch.setenv("SUPERSEDE_OLD_CODES", "true")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example,https://b.example")

        config = load_settings()
        assert config.mongo_url == "mongodb://localhost:27017"
        assert config.registry_backend == "mongo"
        assert config.share_ttl_minutes == 60
        assert config.supersede_old_codes is True
        assert config.cors_origins == ["https://a.example", "https://b.example"]


class TestBuildRegistry:
    def test_memory_backend(self):
        assert isinstance(build_registry(Settings(registry_backend="memory")), MemoryShareRegistry)

    async def test_mongo_backend(self):
        registry = build_registry(Settings(registry_backend="mongo", mongo_url="mongodb://localhost:27017"))
        assert isinstance(registry, MongoShareRegistry)
        assert registry.collection.name == "shares"
        await registry.close()

    def test_mongo_requires_url(self):
        with pytest.raises(RuntimeError):
            build_registry(Settings(registry_backend="mongo"))

    def test_unknown_backend(self):
        with pytest.raises(RuntimeError):
            build_registry(Settings(registry_backend="redis"))
