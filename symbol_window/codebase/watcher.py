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

"""File system watching for incremental index updates.

watchdog delivers events on its observer thread. The handler only forwards
them to the event loop; all queue and store work happens on the loop.
"""

import asyncio
import logging
import os
from typing import Iterable, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from symbol_window.codebase.ignore_patterns import FastIgnoreFilter
from symbol_window.codebase.indexer import SymbolIndexer
from symbol_window.codebase.paths import PathLike, canonicalize_path, find_root
from symbol_window.codebase.symbol_store import StoreCorruptedError, StoreError

logger = logging.getLogger(__name__)


class IndexEventHandler(FileSystemEventHandler):
    """Translates file system events into indexer operations.

    - create / modify: enqueue unless the fast filter ignores the path
    - delete: remove from the store immediately
    - move: delete the source, enqueue the destination (atomic saves)
    - .gitignore changes: reload the fast filter
    """

    def __init__(
        self,
        indexer: SymbolIndexer,
        fast_filter: FastIgnoreFilter,
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__()
        self.indexer = indexer
        self.fast_filter = fast_filter
        self.loop = loop

    def _dispatch(self, callback, *args) -> None:
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(callback, *args)
        except RuntimeError as e:
            logger.debug(f"Dropping file event, loop unavailable: {e}")

    # watchdog callbacks (observer thread)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch(self.handle_changed, os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch(self.handle_changed, os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._dispatch(self.handle_deleted, os.fsdecode(event.src_path), event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._dispatch(
            self.handle_moved,
            os.fsdecode(event.src_path),
            os.fsdecode(event.dest_path),
            event.is_directory,
        )

    # Loop-side handlers

    def handle_changed(self, path: str) -> None:
        path = canonicalize_path(path)
        if self.fast_filter.is_gitignore(path):
            self._reload_filter(path)
            return
        if self.fast_filter.should_ignore(path):
            return
        self.indexer.add_to_queue([path])

    def handle_deleted(self, path: str, is_directory: bool = False) -> None:
        path = canonicalize_path(path)
        if self.fast_filter.is_gitignore(path):
            self._reload_filter(path)
            return
        try:
            if is_directory:
                self.indexer.remove_directory(path)
            else:
                self.indexer.remove_file(path)
        except StoreCorruptedError as e:
            self.indexer.on_corruption.emit(e)
        except StoreError as e:
            logger.error(f"Failed to remove {path} from the index: {e}")

    def handle_moved(self, src_path: str, dest_path: str, is_directory: bool = False) -> None:
        self.handle_deleted(src_path, is_directory)
        if is_directory:
            for path in self._walk_files(dest_path):
                self.handle_changed(path)
        else:
            self.handle_changed(dest_path)

    def _reload_filter(self, gitignore_path: str) -> None:
        root = find_root(gitignore_path, self.fast_filter.roots)
        logger.info(f"Reloading ignore rules for {root}")
        self.fast_filter.reload(root)

    def _walk_files(self, directory: str) -> List[str]:
        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames[:] = [
                name
                for name in dirnames
                if not self.fast_filter.should_ignore(os.path.join(dirpath, name))
            ]
            files.extend(os.path.join(dirpath, name) for name in filenames)
        return files


class IndexWatcher:
    """Owns the watchdog observer for all workspace roots."""

    def __init__(
        self,
        roots: Iterable[PathLike],
        indexer: SymbolIndexer,
        fast_filter: FastIgnoreFilter,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.roots: List[str] = [canonicalize_path(root) for root in roots]
        self.indexer = indexer
        self.fast_filter = fast_filter
        self._loop = loop
        self._observer: Optional[Observer] = None
        self.handler: Optional[IndexEventHandler] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """Start watching. Must be called from the loop thread if no loop was given."""
        if self._observer is not None:
            return

        loop = self._loop or asyncio.get_running_loop()
        self.handler = IndexEventHandler(self.indexer, self.fast_filter, loop)
        observer = Observer()
        for root in self.roots:
            if os.path.isdir(root):
                observer.schedule(self.handler, root, recursive=True)
            else:
                logger.warning(f"Not watching missing directory {root}")
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(f"Watching {len(self.roots)} workspace root(s) for changes")

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.debug("File watcher stopped")
