"""
Cachetron - Cache Manager

Owns the single active cache adapter, watches cachetron.json for edits and
migrates live data to a new backend when the (type, url) pair changes.

States:
    UNINITIALIZED --acquire()--> ACTIVE --config change--> MIGRATING --> ACTIVE

Migration protocol:
    1. Build the new adapter from the new configuration.
    2. Copy every key visible through old.keys() whose value is not None.
    3. Disconnect the old adapter.
    4. Install the new adapter and remember the new configuration.
    A failure during the copy is logged and cutover still happens (fail-open).

Known races, left as-is:
    - Ordinary traffic keeps hitting the old adapter during migration; a write
      landing after key enumeration and before cutover can be lost.
    - Raw adapter references returned by acquire() before a migration point
      at a disconnected adapter afterwards. Use handle() for a reference that
      always reaches the active backend.
    - Nothing bounds the copy loop; one stuck read/write stalls migration.

Usage:
    manager = CacheManager(config_path="cachetron.json")
    cache = manager.handle()
    await cache.set("user:1", {"name": "Ada"})
    ...
    await manager.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from watchfiles import awatch

from ..config import CacheConfiguration, RuntimeSettings, load_cache_config, load_settings
from ..errors import ConfigurationError, MigrationError
from ..observability.collector import MetricsCollector
from ..observability.store import MetricsStore
from .factory import create_cache
from .interface import CacheInterface, TTLSource
from .metrics import MetricsSnapshot

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[CacheConfiguration, TTLSource | None, RuntimeSettings], CacheInterface]


class ManagerState(str, Enum):
    """Lifecycle states of the CacheManager."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    MIGRATING = "migrating"


class CacheManager:
    """
    Single owner of the active cache adapter.

    Pass the manager (or its handle()) to call sites instead of reaching for
    a module-level global.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        settings: RuntimeSettings | None = None,
        watch: bool = True,
        collect_metrics: bool = True,
        adapter_factory: AdapterFactory = create_cache,
    ) -> None:
        """
        Args:
            config_path: Path to cachetron.json (default: settings.config_path)
            settings: Runtime settings (default: load_settings(), i.e. environment and .env)
            watch: Watch the config file for edits after the first acquire()
            collect_metrics: Run the periodic MetricsCollector while active
            adapter_factory: Builds adapters from configuration
        """
        self.settings = settings or load_settings()
        self.config_path = Path(config_path or self.settings.config_path)
        self.watch = watch
        self._adapter_factory = adapter_factory

        self._state = ManagerState.UNINITIALIZED
        self._adapter: CacheInterface | None = None
        self._config: CacheConfiguration | None = None
        self._pending_config: CacheConfiguration | None = None

        self._watch_task: asyncio.Task[None] | None = None
        self._watch_stop: asyncio.Event | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._reload_tasks: set[asyncio.Task[bool]] = set()
        self._reload_lock = asyncio.Lock()

        self.collector: MetricsCollector | None = None
        if collect_metrics:
            self.collector = MetricsCollector(
                cache_source=self.current,
                store=MetricsStore(self.settings.metrics_path, self.settings.metrics_max_entries),
                interval=self.settings.metrics_interval,
            )

    # ------------ State ------------

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def config(self) -> CacheConfiguration | None:
        """Configuration of the active adapter."""
        return self._config

    @property
    def pending_config(self) -> CacheConfiguration | None:
        """Configuration being migrated to, while MIGRATING."""
        return self._pending_config

    def current(self) -> CacheInterface | None:
        """The active adapter, or None before the first acquire()."""
        return self._adapter

    def _ttl_source(self) -> TTLSource | None:
        return self.collector.latest_features if self.collector else None

    def _build_adapter(self, config: CacheConfiguration) -> CacheInterface:
        return self._adapter_factory(config, self._ttl_source(), self.settings)

    # ------------ Acquire ------------

    async def acquire(self) -> CacheInterface:
        """
        Return the active adapter, creating it on first use.

        From UNINITIALIZED: load cachetron.json, build the adapter, start the
        config watcher and metrics collection.

        Raises:
            ConfigurationError: If the config file is missing or invalid
        """
        if self._adapter is not None:
            return self._adapter

        config = load_cache_config(self.config_path)
        adapter = self._build_adapter(config)

        self._adapter = adapter
        self._config = config
        self._state = ManagerState.ACTIVE
        logger.info(
            "Cache manager active with %s backend",
            config.type.value,
            extra={"backend": config.type.value, "config_path": str(self.config_path)},
        )

        if self.watch:
            self._start_watcher()
        if self.collector is not None:
            self.collector.start()

        return adapter

    def handle(self) -> CacheHandle:
        """Stable reference that always forwards to the active adapter."""
        return CacheHandle(self)

    # ------------ Change detection ------------

    def _start_watcher(self) -> None:
        if self._watch_task is not None and not self._watch_task.done():
            return
        self._watch_stop = asyncio.Event()
        self._watch_task = asyncio.get_running_loop().create_task(self._watch_config(), name="cachetron-config-watch")

    async def _watch_config(self) -> None:
        """Feed file-change events for cachetron.json into notify_change()."""
        target = self.config_path.resolve()

        def only_config_file(_change: Any, path: str) -> bool:
            return Path(path).name == target.name

        logger.info("Watching cache config for changes", extra={"path": str(target)})
        try:
            async for _changes in awatch(
                target.parent,
                watch_filter=only_config_file,
                debounce=50,
                stop_event=self._watch_stop,
                recursive=False,
            ):
                self.notify_change()
        except Exception as e:
            logger.error(
                f"Config watcher stopped: {e}",
                extra={"path": str(target), "error": str(e)},
                exc_info=True,
            )

    def notify_change(self) -> None:
        """
        Record a config change event.

        Restarts the debounce timer; the reload runs once the quiet window
        elapses without further events.
        """
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.settings.debounce_seconds, self._fire_reload)

    def _fire_reload(self) -> None:
        self._debounce_handle = None
        task = asyncio.get_running_loop().create_task(self.reload(), name="cachetron-config-reload")
        self._reload_tasks.add(task)
        task.add_done_callback(self._reload_tasks.discard)

    async def wait_until_idle(self) -> None:
        """Wait for a pending debounce window and any in-flight reloads."""
        while self._debounce_handle is not None or self._reload_tasks:
            if self._reload_tasks:
                await asyncio.gather(*self._reload_tasks, return_exceptions=True)
            else:
                await asyncio.sleep(self.settings.debounce_seconds / 4 or 0.01)

    async def reload(self) -> bool:
        """
        Re-read cachetron.json and migrate if the backend identity changed.

        An invalid config is logged and the current adapter stays active.
        Reloads and migrations run one at a time, so the identity check always
        sees the configuration installed by the previous migration.

        Returns:
            True if a migration happened
        """
        async with self._reload_lock:
            return await self._reload()

    async def _reload(self) -> bool:
        try:
            new_config = load_cache_config(self.config_path)
        except ConfigurationError as e:
            logger.error(
                f"Error reloading config: {e.message}",
                extra={"path": str(self.config_path), "details": e.details},
            )
            return False

        if self._config is not None and new_config.identity() == self._config.identity():
            if new_config.auto_ttl != self._config.auto_ttl and self._adapter is not None:
                self._adapter.auto_ttl = new_config.auto_ttl
                logger.info("Adaptive TTL %s", "enabled" if new_config.auto_ttl else "disabled")
            self._config = new_config
            return False

        logger.info(
            "Config changed, migrating cache...",
            extra={
                "from_backend": self._config.type.value if self._config else None,
                "to_backend": new_config.type.value,
            },
        )
        try:
            await self._migrate(new_config)
        except ConfigurationError as e:
            logger.error(
                f"Error reloading config: {e.message}",
                extra={"path": str(self.config_path), "details": e.details},
            )
            return False
        return True

    # ------------ Migration ------------

    async def migrate_to(self, new_config: CacheConfiguration) -> CacheInterface:
        """
        Build an adapter for new_config, copy data into it and make it active.

        Raises:
            ConfigurationError: If the new adapter cannot be built; the
                current adapter stays active
        """
        async with self._reload_lock:
            return await self._migrate(new_config)

    async def _migrate(self, new_config: CacheConfiguration) -> CacheInterface:
        new_adapter = self._build_adapter(new_config)
        old_adapter = self._adapter

        self._state = ManagerState.MIGRATING
        self._pending_config = new_config
        try:
            if old_adapter is not None:
                await self._copy_keys(old_adapter, new_adapter)
                await self._release(old_adapter)

            self._adapter = new_adapter
            self._config = new_config
        finally:
            self._pending_config = None
            self._state = ManagerState.ACTIVE

        logger.info(f"Now using {new_config.type.value} cache", extra={"backend": new_config.type.value})
        return new_adapter

    async def _copy_keys(self, old: CacheInterface, new: CacheInterface) -> int:
        """Copy every readable key from old to new. Failures are logged, never raised."""
        copied = 0
        try:
            keys = await old.keys()
            for key in keys:
                value = await old.get(key)
                if value is not None:
                    await new.set(key, value)
                    copied += 1
            logger.info(
                "Migration completed",
                extra={"keys_seen": len(keys), "keys_copied": copied},
            )
        except Exception as e:
            error = MigrationError(
                f"Migration from {old.backend_name} to {new.backend_name} failed: {e}",
                details={"keys_copied": copied, "error": str(e)},
            )
            logger.error(error.message, extra={"details": error.details}, exc_info=True)
        return copied

    async def _release(self, adapter: CacheInterface) -> None:
        try:
            await adapter.disconnect()
            logger.info("Old cache disconnected", extra={"backend": adapter.backend_name})
        except Exception as e:
            logger.error(
                f"Error disconnecting old cache: {e}",
                extra={"backend": adapter.backend_name, "error": str(e)},
                exc_info=True,
            )

    # ------------ Shutdown ------------

    async def close(self) -> None:
        """Stop background tasks and disconnect the active adapter."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

        if self._watch_task is not None:
            if self._watch_stop is not None:
                self._watch_stop.set()
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None

        if self._reload_tasks:
            await asyncio.gather(*self._reload_tasks, return_exceptions=True)

        if self.collector is not None:
            await self.collector.stop()

        if self._adapter is not None:
            await self._release(self._adapter)

        self._adapter = None
        self._config = None
        self._state = ManagerState.UNINITIALIZED
        logger.info("Cache manager closed")

    async def __aenter__(self) -> CacheManager:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class CacheHandle:
    """
    Indirection over CacheManager.

    Every call resolves the active adapter at call time, so a handle held
    across a migration reaches the new backend.
    """

    def __init__(self, manager: CacheManager) -> None:
        self._manager = manager

    async def _target(self) -> CacheInterface:
        return await self._manager.acquire()

    async def get(self, key: str) -> Any | None:
        return await (await self._target()).get(key)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        await (await self._target()).set(key, value, ttl)

    async def delete(self, key: str) -> None:
        await (await self._target()).delete(key)

    async def has_key(self, key: str) -> bool:
        return await (await self._target()).has_key(key)

    async def clear(self) -> None:
        await (await self._target()).clear()

    async def keys(self) -> list[str]:
        return await (await self._target()).keys()

    async def get_cache_metrics(self) -> MetricsSnapshot:
        return await (await self._target()).get_cache_metrics()
