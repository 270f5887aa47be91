"""
Runtime Configuration Manager

Owns the mutable toggles of one cache instance:

- metrics_enabled / key_metrics_enabled (orthogonal)
- tenant_aware / user_aware / locale_aware (key derivation)

Contract: components hold a reference to the manager, never to a RuntimeConfig
snapshot, and read ``manager.current`` on every operation. Setters stage a
change and call ``reload()``, which publishes the staged config and notifies
listeners (the metrics engine starts or stops its persistence loop there).

When a storage adapter is given, toggles are persisted under a reserved key so
they survive restarts and can be shared by instances on a networked store.
"""

from collections.abc import Callable
from dataclasses import asdict, dataclass, replace
from typing import Any

from readthrough.core.config.constants import RUNTIME_CONFIG_KEY_PREFIX
from readthrough.core.config.settings import Settings
from readthrough.core.interfaces.storage import StorageAdapter
from readthrough.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuntimeConfig:
    """Immutable snapshot of the runtime toggles."""

    metrics_enabled: bool = False
    key_metrics_enabled: bool = False
    tenant_aware: bool = True
    user_aware: bool = True
    locale_aware: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "RuntimeConfig":
        return cls(
            metrics_enabled=settings.metrics.METRICS_ENABLED,
            key_metrics_enabled=settings.metrics.KEY_METRICS_ENABLED,
            tenant_aware=settings.cache.CACHE_TENANT_AWARE,
            user_aware=settings.cache.CACHE_USER_AWARE,
            locale_aware=settings.cache.CACHE_LOCALE_AWARE,
        )

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any], fallback: "RuntimeConfig") -> "RuntimeConfig":
        """Build from persisted data; unknown fields are ignored, missing ones fall back."""
        known = {name: bool(data[name]) for name in fallback.to_dict() if name in data}
        return replace(fallback, **known)


ConfigListener = Callable[[RuntimeConfig, RuntimeConfig], None]


class RuntimeConfigManager:
    """
    Holds the single live RuntimeConfig of a cache instance.

    Usage:
        manager = RuntimeConfigManager("orders", RuntimeConfig())
        await manager.set_metrics_enabled(True)
        if manager.current.metrics_enabled:
            ...
    """

    def __init__(
        self,
        cache_name: str,
        initial: RuntimeConfig | None = None,
        store: StorageAdapter | None = None,
    ):
        self._cache_name = cache_name
        self._store = store
        self._live = initial or RuntimeConfig()
        self._staged = self._live
        self._listeners: list[ConfigListener] = []

    @property
    def current(self) -> RuntimeConfig:
        """The live configuration. Read it on every operation."""
        return self._live

    @property
    def storage_key(self) -> str:
        return f"{RUNTIME_CONFIG_KEY_PREFIX}{self._cache_name}"

    def add_listener(self, listener: ConfigListener) -> None:
        """Register a callback invoked with (previous, current) after every reload."""
        self._listeners.append(listener)

    def reload(self) -> RuntimeConfig:
        """
        Publish the staged configuration.

        STAGE-CFG.1: Runtime config reload

        Listeners run synchronously; an exception from a listener propagates.
        """
        previous, self._live = self._live, self._staged
        log_stage(
            logger,
            "CFG.1",
            "Runtime configuration reloaded",
            level="debug",
            cache=self._cache_name,
            **self._live.to_dict(),
        )
        for listener in list(self._listeners):
            listener(previous, self._live)
        return self._live

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    async def set_metrics_enabled(self, enabled: bool) -> RuntimeConfig:
        return await self._apply(metrics_enabled=bool(enabled))

    async def set_key_metrics_enabled(self, enabled: bool) -> RuntimeConfig:
        return await self._apply(key_metrics_enabled=bool(enabled))

    async def set_awareness(
        self,
        tenant: bool | None = None,
        user: bool | None = None,
        locale: bool | None = None,
    ) -> RuntimeConfig:
        changes = {
            name: bool(value)
            for name, value in (("tenant_aware", tenant), ("user_aware", user), ("locale_aware", locale))
            if value is not None
        }
        return await self._apply(**changes)

    async def _apply(self, **changes: bool) -> RuntimeConfig:
        staged = replace(self._staged, **changes)
        await self._persist(staged)
        self._staged = staged
        log_stage(logger, "CFG.2", "Runtime configuration changed", cache=self._cache_name, **changes)
        return self.reload()

    # -------------------------------------------------------------------------
    # Durable state
    # -------------------------------------------------------------------------

    async def load(self) -> RuntimeConfig:
        """
        Load persisted toggles, falling back to the current values.

        STAGE-CFG.0: Runtime config load

        A failing store is logged and tolerated; the instance keeps running
        on its initial configuration.
        """
        if self._store is not None:
            try:
                data = await self._store.get(self.storage_key)
            except Exception as e:
                log_stage(
                    logger,
                    "CFG.0",
                    "Failed to load runtime configuration, keeping defaults",
                    level="warning",
                    cache=self._cache_name,
                    error=str(e),
                )
                data = None
            if isinstance(data, dict):
                self._staged = RuntimeConfig.from_dict(data, self._staged)
        return self.reload()

    async def refresh(self) -> RuntimeConfig:
        """Re-read toggles written by other instances sharing the store."""
        return await self.load()

    async def _persist(self, config: RuntimeConfig) -> None:
        if self._store is None:
            return
        await self._store.set(self.storage_key, config.to_dict())
