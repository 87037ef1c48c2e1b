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

"""Incremental symbol indexer.

Files waiting for extraction sit in a de-duplicated FIFO queue. A single
drain task takes bounded batches from it, re-validates each batch against the
authoritative ignore filter, asks the symbol provider for every surviving
file concurrently and stores the flattened result. Between batches the task
sleeps briefly so searches and other work on the loop are not starved.

The symbol provider is usually slow to start, so the indexer begins paused
and follows the readiness gate: it pauses when the provider becomes
unavailable and resumes (continuing with whatever is still queued) when it
comes back.

Usage:
    indexer = SymbolIndexer(store, provider, discovery, settings, readiness)
    sub = indexer.on_progress.subscribe(lambda pct: print(f"{pct}%"))
    readiness.resume()
    await indexer.sync_index()
"""

import asyncio
import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

from symbol_window.codebase.discovery import FileDiscovery
from symbol_window.codebase.flattener import flatten_symbols
from symbol_window.codebase.ignore_patterns import ExcludeFilter
from symbol_window.codebase.paths import PathLike, canonicalize_path, is_within
from symbol_window.codebase.symbol_store import StoreCorruptedError, StoreError, SymbolStore
from symbol_window.codebase.sync import SyncPlan, compute_sync_plan, stat_mtime_ms
from symbol_window.config import IndexerSettings
from symbol_window.events import EventEmitter
from symbol_window.lsp.provider import SymbolProvider
from symbol_window.readiness import ReadinessGate

logger = logging.getLogger(__name__)


class FailureTracker:
    """Counts consecutive indexing failures per file and mtime.

    A file that fails repeatedly at the same mtime (e.g. one the provider
    always chokes on) is not re-queued by reconciliation until it changes.
    """

    def __init__(self, max_failures: int = 3):
        self.max_failures = max_failures
        self._failures: Dict[str, Tuple[int, int]] = {}
        self._lock = threading.Lock()

    def record_failure(self, path: str, mtime: int) -> int:
        """Record a failure and return the consecutive count at this mtime."""
        with self._lock:
            previous_mtime, count = self._failures.get(path, (mtime, 0))
            count = count + 1 if previous_mtime == mtime else 1
            self._failures[path] = (mtime, count)
        if count == self.max_failures:
            logger.warning(
                f"Giving up on {path} after {count} failed attempts; "
                "it will be retried once it changes"
            )
        return count

    def record_success(self, path: str) -> None:
        self.forget(path)

    def forget(self, path: str) -> None:
        with self._lock:
            self._failures.pop(path, None)

    def should_skip(self, path: str, mtime: int) -> bool:
        with self._lock:
            entry = self._failures.get(path)
        return entry is not None and entry[0] == mtime and entry[1] >= self.max_failures

    def failure_count(self, path: str) -> int:
        with self._lock:
            entry = self._failures.get(path)
        return entry[1] if entry else 0

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()


class SymbolIndexer:
    """Queue, batch scheduler and per-file ingestion for the symbol store."""

    def __init__(
        self,
        store: SymbolStore,
        provider: SymbolProvider,
        discovery: FileDiscovery,
        settings: Optional[IndexerSettings] = None,
        readiness: Optional[ReadinessGate] = None,
        exclude_filter: Optional[ExcludeFilter] = None,
        ignored_paths: Optional[Iterable[PathLike]] = None,
    ):
        """Initialize the indexer.

        Args:
            store: Destination of the extracted symbols
            provider: Source of document symbols
            discovery: Enumerates the workspace for rebuild and sync
            settings: Batch size, delay and tolerance settings
            readiness: Provider availability; the indexer follows it
            exclude_filter: Authoritative per-batch filter (None keeps every file)
            ignored_paths: Files or directories never indexed (the database itself)
        """
        self.store = store
        self.provider = provider
        self.discovery = discovery
        self.settings = settings or IndexerSettings()
        self.readiness = readiness or ReadinessGate()
        self.exclude_filter = exclude_filter
        self.ignored_paths: List[str] = [canonicalize_path(path) for path in ignored_paths or ()]
        self.failures = FailureTracker(self.settings.max_index_failures)

        self._queue: List[str] = []
        self._queued: Set[str] = set()
        self._queue_lock = threading.Lock()

        self.paused = not self.readiness.is_available
        self.processing = False
        self._drain_task: Optional[asyncio.Task] = None

        self.processed = 0
        self.total = 0

        self.on_progress: EventEmitter[int] = EventEmitter("progress")
        self.on_indexing_complete: EventEmitter[None] = EventEmitter("indexing_complete")
        self.on_rebuild_started: EventEmitter[None] = EventEmitter("rebuild_started")
        self.on_corruption: EventEmitter[StoreCorruptedError] = EventEmitter("corruption")

        self._readiness_subscription = self.readiness.on_change.subscribe(
            self._on_readiness_change
        )

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    def is_queued(self, path: str) -> bool:
        return canonicalize_path(path) in self._queued

    def is_ignored(self, path: str) -> bool:
        return bool(self.ignored_paths) and is_within(path, self.ignored_paths)

    def add_to_queue(self, paths: Iterable[str]) -> int:
        """Queue files for indexing, ignoring ones already pending.

        Returns:
            Number of newly queued files
        """
        added = 0
        with self._queue_lock:
            for path in paths:
                canonical = canonicalize_path(path)
                if canonical in self._queued or self.is_ignored(canonical):
                    continue
                self._queued.add(canonical)
                self._queue.append(canonical)
                added += 1
            self.total += added

        if added and not self.paused:
            self._start_draining()
        return added

    def _take_batch(self) -> List[str]:
        size = self.settings.effective_batch_size
        with self._queue_lock:
            batch = self._queue[:size]
            del self._queue[:size]
            for path in batch:
                self._queued.discard(path)
        return batch

    def _reset_queue(self) -> None:
        with self._queue_lock:
            self._queue.clear()
            self._queued.clear()
            self.processed = 0
            self.total = 0

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """Stop taking new batches; the batch in flight completes."""
        if not self.paused:
            logger.info("Symbol indexing paused")
        self.paused = True

    def resume(self) -> None:
        """Resume draining whatever is still queued."""
        if self.paused:
            logger.info(f"Symbol indexing resumed ({self.queue_length} file(s) queued)")
        self.paused = False
        if self._queue:
            self._start_draining()

    def _on_readiness_change(self, available: bool) -> None:
        if available:
            self.resume()
        else:
            self.pause()

    def _start_draining(self) -> None:
        if self.processing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; indexing deferred")
            return
        self.processing = True
        self._drain_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while not self.paused:
                batch = self._take_batch()
                if not batch:
                    break

                try:
                    await self._process_batch(batch)
                except StoreCorruptedError as e:
                    logger.error(f"Symbol database corrupted while indexing: {e}")
                    self.on_corruption.emit(e)
                    break
                except Exception as e:
                    logger.exception(f"Unexpected error while indexing batch: {e}")

                if not self._queue:
                    self._finish()
                    break

                await asyncio.sleep(self.settings.batch_delay)
        finally:
            self.processing = False

    async def _process_batch(self, batch: List[str]) -> None:
        try:
            allowed = (
                await self.exclude_filter.filter(batch) if self.exclude_filter else list(batch)
            )
        except Exception as e:
            logger.warning(f"Ignore filter failed, indexing batch unfiltered: {e}")
            allowed = list(batch)

        allowed_set = set(allowed)
        for path in batch:
            if path not in allowed_set:
                # Ignored files must not keep symbols from an earlier pass
                try:
                    self.store.delete_file(path)
                except StoreCorruptedError:
                    raise
                except StoreError as e:
                    logger.error(f"Failed to drop ignored file {path} from the index: {e}")
                self.failures.forget(path)

        results = await asyncio.gather(
            *(self.index_file(path) for path in allowed), return_exceptions=True
        )
        for path, result in zip(allowed, results):
            if isinstance(result, StoreCorruptedError):
                raise result
            if isinstance(result, BaseException):
                logger.warning(f"Failed to index {path}: {result}")
                mtime = stat_mtime_ms(path)
                if mtime is not None:
                    self.failures.record_failure(path, mtime)

        self.processed += len(batch)
        self.on_progress.emit(self.progress)

    def _finish(self) -> None:
        logger.info(f"Symbol indexing complete ({self.processed} file(s) processed)")
        self.on_indexing_complete.emit()
        self.on_progress.emit(100)
        with self._queue_lock:
            self.processed = 0
            self.total = 0

    @property
    def progress(self) -> int:
        if self.total <= 0:
            return 100
        return min(100, (self.processed * 100) // self.total)

    async def wait_until_idle(self) -> None:
        """Wait for the current drain task (if any) to finish."""
        while True:
            task = self._drain_task
            if task is None or task.done() or task is asyncio.current_task():
                return
            await asyncio.wait({task})

    async def stop(self) -> None:
        """Pause, cancel the drain task and drop every listener."""
        self.pause()
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._readiness_subscription.dispose()
        for emitter in (
            self.on_progress,
            self.on_indexing_complete,
            self.on_rebuild_started,
            self.on_corruption,
        ):
            emitter.clear()

    # ------------------------------------------------------------------
    # Per-file ingestion
    # ------------------------------------------------------------------

    async def index_file(self, path: str) -> bool:
        """Extract and store the symbols of one file.

        Returns:
            True if the file was stored; False when it vanished or failed

        Raises:
            StoreCorruptedError: The database must be rebuilt
        """
        mtime = stat_mtime_ms(path)
        if mtime is None:
            # Deleted, or caught in the middle of an atomic rewrite
            logger.debug(f"Skipping {path}: file no longer exists")
            return False

        try:
            symbols = await self.provider.get_symbols(path)
        except Exception as e:
            logger.warning(f"Symbol extraction failed for {path}: {e}")
            self.failures.record_failure(path, mtime)
            return False

        flat = flatten_symbols(symbols)
        try:
            self.store.insert_file_and_symbols(path, mtime, flat)
        except StoreCorruptedError:
            raise
        except StoreError as e:
            logger.error(f"Failed to store symbols for {path}: {e}")
            self.failures.record_failure(path, mtime)
            return False

        self.failures.record_success(path)
        logger.debug(f"Indexed {path}: {len(flat)} symbol(s)")
        return True

    def remove_file(self, path: str) -> bool:
        """Drop a deleted file from the store."""
        canonical = canonicalize_path(path)
        self.failures.forget(canonical)
        return self.store.delete_file(canonical)

    def remove_directory(self, path: str) -> int:
        canonical = canonicalize_path(path)
        removed = self.store.delete_directory(canonical)
        if removed:
            logger.debug(f"Removed {removed} file(s) under deleted directory {canonical}")
        return removed

    # ------------------------------------------------------------------
    # Rebuild and reconciliation
    # ------------------------------------------------------------------

    async def rebuild_full(self) -> int:
        """Clear the store and re-index every discovered file.

        Returns:
            Number of files queued
        """
        logger.info("Starting full symbol index rebuild")
        self.on_rebuild_started.emit()
        self.pause()
        await self.wait_until_idle()

        try:
            self._reset_queue()
            self.failures.clear()
            self.store.clear()

            files = await self.discovery.discover()
            queued = self.add_to_queue(files)
            logger.info(f"Queued {queued} file(s) for full rebuild")

            if not queued:
                self._finish()
        finally:
            # A failed rebuild must not leave the indexer paused
            if self.readiness.is_available:
                self.resume()
        return queued

    async def rebuild_incremental(self) -> SyncPlan:
        return await self.sync_index()

    async def sync_index(self) -> SyncPlan:
        """Reconcile the store with the workspace.

        New and modified files are queued, files that disappeared are deleted
        right away.
        """
        files = await self.discovery.discover()
        files = [path for path in files if not self.is_ignored(path)]
        stored = self.store.get_files()

        plan = await asyncio.to_thread(
            compute_sync_plan,
            files,
            stored,
            stat_mtime_ms,
            self.settings.mtime_tolerance_ms,
            self.failures.should_skip,
        )

        for path in plan.to_delete:
            self.store.delete_file(path)
            self.failures.forget(path)

        logger.info(
            f"Sync: {len(plan.to_index)} to index, {len(plan.to_delete)} deleted, "
            f"{len(plan.unchanged)} unchanged"
        )

        if plan.to_index:
            self.add_to_queue(plan.to_index)
        elif not self._queue and not self.processing:
            self._finish()
        return plan
