"""
Storage Adapter Factory

Builds the adapter named by ``CACHE_STORE``.
"""

from readthrough.core.config.settings import Settings, get_settings
from readthrough.core.exceptions import ConfigurationError
from readthrough.core.interfaces.storage import StorageAdapter
from readthrough.core.logging.logger import get_logger, log_stage
from readthrough.infrastructure.storage.memory_adapter import MemoryStorageAdapter
from readthrough.infrastructure.storage.redis_adapter import RedisStorageAdapter

logger = get_logger(__name__)


def create_storage_adapter(settings: Settings | None = None) -> StorageAdapter:
    """
    Create the configured storage adapter.

    STAGE-STORE.0: Adapter selection

    Raises:
        ConfigurationError: If the store kind is unknown
    """
    settings = settings or get_settings()
    kind = settings.cache.CACHE_STORE
    if kind == "memory":
        adapter = MemoryStorageAdapter(max_size=settings.cache.CACHE_MEMORY_MAX_SIZE)
    elif kind == "redis":
        adapter = RedisStorageAdapter(settings)
    else:
        raise ConfigurationError(
            f"Unknown storage adapter: {kind}", details={"CACHE_STORE": kind}
        ).with_suggestion("Set CACHE_STORE to 'memory' or 'redis'")
    log_stage(logger, "STORE.0", "Storage adapter created", store=kind)
    return adapter
