"""Share registry wiring: one registry per process, picked from settings"""
from motor.motor_asyncio import AsyncIOMotorClient
import logging

from services.share_registry import MemoryShareRegistry, MongoShareRegistry
from utils.config import settings

logger = logging.getLogger(__name__)

_registry = None


def build_registry(config=settings):
    if config.registry_backend == "mongo":
        if not config.mongo_url:
            raise RuntimeError("MONGO_URL is required for the mongo registry backend")
        client = AsyncIOMotorClient(config.mongo_url)
        logger.info(f"Using MongoDB share registry (db={config.db_name})")
        return MongoShareRegistry(client[config.db_name])
    if config.registry_backend == "memory":
        logger.warning("Using in-memory share registry; shared codes are lost on restart")
        return MemoryShareRegistry()
    raise RuntimeError(f"Unknown REGISTRY_BACKEND: {config.registry_backend}")


def get_registry():
    """FastAPI dependency returning the process-wide registry"""
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry


async def close_registry() -> None:
    global _registry
    if _registry is not None:
        await _registry.close()
        _registry = None
