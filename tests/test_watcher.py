# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for file system event handling."""

import asyncio
import os
from unittest.mock import MagicMock

import pytest
from watchdog.events import (
    DirDeletedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from symbol_window.codebase.flattener import flatten_symbols
from symbol_window.codebase.ignore_patterns import FastIgnoreFilter
from symbol_window.codebase.symbol_store import StoreCorruptedError
from symbol_window.codebase.watcher import IndexEventHandler, IndexWatcher

from tests.conftest import make_symbol, write_file


@pytest.fixture
def fast_filter(workspace):
    (workspace / ".gitignore").write_text("node_modules\n")
    return FastIgnoreFilter([workspace])


@pytest.fixture
def handler(indexer, fast_filter):
    return IndexEventHandler(indexer, fast_filter, MagicMock())


class TestLoopSideHandlers:
    """Event translation, run directly on the loop."""

    def test_change_enqueues(self, handler, indexer, workspace):
        path = str(workspace / "src" / "app.py")

        handler.handle_changed(path)

        assert indexer.is_queued(path)

    def test_ignored_change_is_dropped(self, handler, indexer, workspace):
        handler.handle_changed(str(workspace / "node_modules" / "lib" / "x.js"))
        handler.handle_changed(str(workspace / ".git" / "index"))

        assert indexer.queue_length == 0

    def test_database_writes_are_dropped(self, indexer, workspace):
        db_file = workspace / "cache" / "symbols.db"
        fast_filter = FastIgnoreFilter([workspace], extra_ignored=[workspace / "cache"])
        handler = IndexEventHandler(indexer, fast_filter, MagicMock())

        for path in (str(db_file), str(db_file) + "-wal", str(db_file) + "-shm"):
            handler.handle_changed(path)
        handler.handle_changed(str(workspace / "main.py"))

        assert indexer._queue == [str(workspace / "main.py")]

    def test_delete_removes_from_store(self, handler, store, workspace):
        path = str(workspace / "a.py")
        store.insert_file_and_symbols(path, 1000, flatten_symbols([make_symbol("a")]))

        handler.handle_deleted(path)

        assert store.get_file(path) is None

    def test_directory_delete(self, handler, store, workspace):
        inside = str(workspace / "pkg" / "mod.py")
        outside = str(workspace / "other.py")
        for path in (inside, outside):
            store.insert_file_and_symbols(path, 1000, [])

        handler.handle_deleted(str(workspace / "pkg"), is_directory=True)

        assert list(store.get_files()) == [outside]

    def test_move_deletes_source_and_enqueues_destination(
        self, handler, indexer, store, workspace
    ):
        source = str(workspace / "draft.tmp")
        target = str(workspace / "final.py")
        store.insert_file_and_symbols(source, 1000, [])

        handler.handle_moved(source, target)

        assert store.get_file(source) is None
        assert indexer.is_queued(target)

    def test_directory_move_enqueues_contents(self, handler, indexer, workspace):
        moved = write_file(workspace / "new_pkg" / "mod.py")
        ignored = write_file(workspace / "new_pkg" / "node_modules" / "dep.js")

        handler.handle_moved(str(workspace / "old_pkg"), str(workspace / "new_pkg"), True)

        assert indexer.is_queued(moved)
        assert not indexer.is_queued(ignored)

    def test_gitignore_change_reloads_filter(self, handler, fast_filter, indexer, workspace):
        (workspace / ".gitignore").write_text("generated\n")

        handler.handle_changed(str(workspace / ".gitignore"))
        handler.handle_changed(str(workspace / "generated" / "api.py"))

        assert fast_filter.should_ignore(workspace / "generated" / "api.py")
        assert indexer.queue_length == 0

    def test_gitignore_delete_restores_defaults(self, handler, fast_filter, workspace):
        (workspace / ".gitignore").unlink()

        handler.handle_deleted(str(workspace / ".gitignore"))

        assert not fast_filter.should_ignore(workspace / "node_modules" / "x.js")

    def test_corruption_on_delete_is_reported(self, handler, indexer, store, monkeypatch):
        def corrupted(path):
            raise StoreCorruptedError("database disk image is malformed")

        monkeypatch.setattr(store, "delete_file", corrupted)
        errors = []
        indexer.on_corruption.subscribe(errors.append)

        handler.handle_deleted("/somewhere/a.py")

        assert len(errors) == 1


class TestWatchdogCallbacks:
    """Observer-thread callbacks are marshalled onto the loop."""

    @pytest.mark.asyncio
    async def test_events_are_dispatched_to_loop(self, indexer, fast_filter, store, workspace):
        handler = IndexEventHandler(indexer, fast_filter, asyncio.get_running_loop())
        created = str(workspace / "created.py")
        modified = str(workspace / "modified.py")
        deleted = str(workspace / "deleted.py")
        moved_to = str(workspace / "moved.py")
        store.insert_file_and_symbols(deleted, 1000, [])

        handler.on_created(FileCreatedEvent(created))
        handler.on_modified(FileModifiedEvent(modified))
        handler.on_deleted(FileDeletedEvent(deleted))
        handler.on_moved(FileMovedEvent(str(workspace / "tmp~"), moved_to))
        handler.on_deleted(DirDeletedEvent(str(workspace / "empty_dir")))
        await asyncio.sleep(0)

        assert indexer.is_queued(created)
        assert indexer.is_queued(modified)
        assert indexer.is_queued(moved_to)
        assert store.get_file(deleted) is None

    @pytest.mark.asyncio
    async def test_observer_picks_up_new_file(self, indexer, fast_filter, workspace):
        watcher = IndexWatcher([workspace], indexer, fast_filter)
        watcher.start()
        try:
            assert watcher.is_running
            path = write_file(workspace / "live.py")
            for _ in range(50):
                if indexer.is_queued(path):
                    break
                await asyncio.sleep(0.1)
            assert indexer.is_queued(os.path.abspath(path))
        finally:
            watcher.stop()
        assert not watcher.is_running
