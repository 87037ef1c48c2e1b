# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Index manager: the public entry point of the symbol index.

Wires the store, the indexer and the file watcher together for one
workspace, exposes search and rebuild operations, and heals the store when
SQLite reports corruption (drop the database, rebuild from scratch).

None of the public methods raise on store errors; they log and return an
empty result instead.

Usage:
    manager = IndexManager(["/path/to/workspace"], provider)
    await manager.start()
    manager.readiness.resume()  # once the symbol provider is up
    results = manager.search("user controller")
    await manager.close()
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from symbol_window.codebase.discovery import FileDiscovery, FileScanner, RipgrepScanner
from symbol_window.codebase.ignore_patterns import ExcludeFilter, FastIgnoreFilter
from symbol_window.codebase.indexer import SymbolIndexer
from symbol_window.codebase.paths import PathLike, canonicalize_path, is_within
from symbol_window.codebase.symbol_store import (
    StoreCorruptedError,
    StoreError,
    SymbolEntry,
    SymbolStore,
)
from symbol_window.codebase.watcher import IndexWatcher
from symbol_window.config import IndexerSettings
from symbol_window.events import EventEmitter, Subscription
from symbol_window.lsp.provider import SymbolProvider
from symbol_window.readiness import ReadinessGate

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 100


class IndexManager:
    """Owns the symbol index of one workspace."""

    def __init__(
        self,
        workspace_roots: Union[PathLike, Iterable[PathLike]],
        provider: SymbolProvider,
        settings: Optional[IndexerSettings] = None,
        readiness: Optional[ReadinessGate] = None,
        scanner: Optional[FileScanner] = None,
        db_path: Optional[PathLike] = None,
        watch: bool = True,
    ):
        """Initialize the manager.

        Args:
            workspace_roots: One root or several; the first holds the database
            provider: Symbol provider used by the indexer
            settings: Indexer settings (default: IndexerSettings())
            readiness: Provider availability gate (default: unavailable)
            scanner: File scanner (default: ripgrep)
            db_path: Database location (default: derived from settings)
            watch: Start a file watcher for incremental updates
        """
        if isinstance(workspace_roots, (str, Path)):
            workspace_roots = [workspace_roots]
        self.roots: List[str] = [canonicalize_path(root) for root in workspace_roots]
        if not self.roots:
            raise ValueError("At least one workspace root is required")

        self.provider = provider
        self.settings = settings or IndexerSettings()
        self.readiness = readiness or ReadinessGate()
        self.scanner = scanner or RipgrepScanner(self.settings.rg_path)
        self.db_path = Path(db_path) if db_path else self.settings.database_path(self.roots[0])
        self.watch = watch

        self.store: Optional[SymbolStore] = None
        self.indexer: Optional[SymbolIndexer] = None
        self.watcher: Optional[IndexWatcher] = None
        self.fast_filter: Optional[FastIgnoreFilter] = None

        self._ready = False
        self._recovering = False
        self._recovery_task: Optional[asyncio.Task] = None
        self._subscriptions: List[Subscription] = []

        self.on_progress: EventEmitter[int] = EventEmitter("progress")
        self.on_indexing_complete: EventEmitter[None] = EventEmitter("indexing_complete")
        self.on_ready_change: EventEmitter[bool] = EventEmitter("ready_change")

    @property
    def enabled(self) -> bool:
        return self.settings.enabled and self.store is not None and self.indexer is not None

    @property
    def is_ready(self) -> bool:
        return self._ready

    def _set_ready(self, ready: bool) -> None:
        if self._ready == ready:
            return
        self._ready = ready
        self.on_ready_change.emit(ready)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, sync: bool = True) -> bool:
        """Open the database, start watching and reconcile with the disk.

        Returns:
            True if the index is running; False when disabled or the
            database could not be opened
        """
        if not self.settings.enabled:
            logger.info("Symbol database disabled by configuration")
            return False
        if self.store is not None:
            return True

        store = SymbolStore(self.db_path)
        try:
            store.open()
        except StoreError as e:
            logger.error(f"Failed to open symbol database at {self.db_path}: {e}")
            return False
        self.store = store

        discovery = FileDiscovery(
            self.scanner, self.roots, self.settings.include_files, self.settings.exclude_files
        )
        exclude_filter = ExcludeFilter(
            self.roots, self.settings.include_files, self.settings.exclude_files
        )
        store_paths = self._store_paths()
        self.indexer = SymbolIndexer(
            store,
            self.provider,
            discovery,
            settings=self.settings,
            readiness=self.readiness,
            exclude_filter=exclude_filter,
            ignored_paths=store_paths,
        )
        self._subscriptions = [
            self.indexer.on_progress.subscribe(self.on_progress.emit),
            self.indexer.on_indexing_complete.subscribe(self._on_indexing_complete),
            self.indexer.on_rebuild_started.subscribe(lambda: self._set_ready(False)),
            self.indexer.on_corruption.subscribe(self._schedule_recovery),
        ]

        if self.watch:
            self.fast_filter = FastIgnoreFilter(self.roots, extra_ignored=store_paths)
            self.watcher = IndexWatcher(self.roots, self.indexer, self.fast_filter)
            self.watcher.start()

        logger.info(f"Symbol database ready at {self.db_path}")
        if sync:
            await self.rebuild_incremental()
        return True

    async def close(self) -> None:
        """Stop watching and indexing, then checkpoint and close the store."""
        if self._recovery_task is not None and not self._recovery_task.done():
            self._recovery_task.cancel()
            try:
                await self._recovery_task
            except asyncio.CancelledError:
                pass

        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        if self.indexer is not None:
            await self.indexer.stop()
            self.indexer = None

        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()

        if self.store is not None:
            self.store.close()
            self.store = None
        self._set_ready(False)

    async def __aenter__(self) -> "IndexManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _store_paths(self) -> List[str]:
        """Paths the index must never pick up: its own storage.

        The whole storage directory, unless it is (or contains) a workspace
        root; then only the database file and its companions.
        """
        storage_dir = canonicalize_path(self.db_path.parent)
        if any(is_within(root, [storage_dir]) for root in self.roots):
            return SymbolStore.database_files(canonicalize_path(self.db_path))
        return [storage_dir]

    def _on_indexing_complete(self) -> None:
        self._set_ready(True)
        self.on_indexing_complete.emit()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def search(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT, offset: int = 0
    ) -> List[SymbolEntry]:
        """Search symbols; returns [] when the index is unavailable."""
        if self.store is None:
            return []
        try:
            return self.store.search(query, limit, offset)
        except StoreCorruptedError as e:
            self._schedule_recovery(e)
        except StoreError as e:
            logger.error(f"Symbol search failed: {e}")
        return []

    async def rebuild_incremental(self) -> None:
        """Index new and modified files, drop deleted ones."""
        if self.indexer is None:
            return
        try:
            await self.indexer.rebuild_incremental()
        except StoreCorruptedError as e:
            self._schedule_recovery(e)
        except StoreError as e:
            logger.error(f"Incremental rebuild failed: {e}")

    async def rebuild_full(self) -> None:
        """Clear the index and re-index the whole workspace."""
        if self.indexer is None:
            return
        try:
            await self.indexer.rebuild_full()
        except StoreCorruptedError as e:
            self._schedule_recovery(e)
        except StoreError as e:
            logger.error(f"Full rebuild failed: {e}")

    def pause_indexing(self) -> None:
        if self.indexer is not None:
            self.indexer.pause()

    def resume_indexing(self) -> None:
        if self.indexer is not None:
            self.indexer.resume()

    async def wait_until_idle(self) -> None:
        """Wait until no recovery is pending and the indexer is idle."""
        while True:
            if self._recovery_task is not None and not self._recovery_task.done():
                await asyncio.wait({self._recovery_task})
            elif self.indexer is not None and self.indexer.processing:
                await self.indexer.wait_until_idle()
            else:
                return

    def stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "enabled": self.enabled,
            "ready": self._ready,
            "db_path": str(self.db_path),
            "roots": list(self.roots),
            "files": 0,
            "symbols": 0,
            "queued": 0,
            "paused": True,
            "processing": False,
            "provider_available": self.readiness.is_available,
        }
        if self.indexer is not None:
            stats.update(
                queued=self.indexer.queue_length,
                paused=self.indexer.paused,
                processing=self.indexer.processing,
            )
        if self.store is not None:
            try:
                stats.update(files=self.store.file_count(), symbols=self.store.symbol_count())
            except StoreCorruptedError as e:
                self._schedule_recovery(e)
            except StoreError as e:
                logger.error(f"Failed to read index statistics: {e}")
        return stats

    # ------------------------------------------------------------------
    # Self-healing
    # ------------------------------------------------------------------

    def _schedule_recovery(self, error: StoreCorruptedError) -> None:
        if self._recovering:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"Symbol database corrupted and no event loop to rebuild it: {error}")
            return
        logger.warning(f"Symbol database corrupted ({error}); rebuilding")
        self._recovering = True
        self._set_ready(False)
        self._recovery_task = loop.create_task(self._recover())

    async def _recover(self) -> None:
        try:
            if self.indexer is None or self.store is None:
                return
            self.indexer.pause()
            await self.indexer.wait_until_idle()
            self.store.recreate()
            await self.indexer.rebuild_full()
        except StoreError as e:
            logger.error(f"Symbol database recovery failed: {e}")
            if self.indexer is not None and self.readiness.is_available:
                self.indexer.resume()
        finally:
            self._recovering = False
