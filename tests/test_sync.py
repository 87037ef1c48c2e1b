# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for store/workspace reconciliation."""

from symbol_window.codebase.symbol_store import FileEntry
from symbol_window.codebase.sync import compute_sync_plan


def _entry(path, mtime):
    return FileEntry(id=1, path=path, mtime=mtime, indexed_at=mtime)


class TestComputeSyncPlan:
    """New, modified, unchanged and stale files."""

    def test_new_modified_and_stale(self):
        stored = {"/ws/A": _entry("/ws/A", 1000), "/ws/C": _entry("/ws/C", 1000)}
        mtimes = {"/ws/A": 5000, "/ws/B": 3000}

        plan = compute_sync_plan(["/ws/A", "/ws/B"], stored, mtimes.get)

        assert sorted(plan.to_index) == ["/ws/A", "/ws/B"]
        assert plan.to_delete == ["/ws/C"]
        assert plan.unchanged == []

    def test_within_tolerance_is_unchanged(self):
        stored = {"/ws/A": _entry("/ws/A", 1000)}

        plan = compute_sync_plan(["/ws/A"], stored, lambda path: 1900)

        assert plan.to_index == []
        assert plan.unchanged == ["/ws/A"]
        assert plan.is_empty

    def test_older_file_beyond_tolerance_is_reindexed(self):
        # e.g. restored from a backup with an earlier timestamp
        stored = {"/ws/A": _entry("/ws/A", 10_000)}

        plan = compute_sync_plan(["/ws/A"], stored, lambda path: 2_000)

        assert plan.to_index == ["/ws/A"]

    def test_custom_tolerance(self):
        stored = {"/ws/A": _entry("/ws/A", 1000)}

        plan = compute_sync_plan(["/ws/A"], stored, lambda path: 1100, tolerance_ms=50)

        assert plan.to_index == ["/ws/A"]

    def test_stat_failure_skips_stored_file(self):
        stored = {"/ws/A": _entry("/ws/A", 1000)}

        plan = compute_sync_plan(["/ws/A"], stored, lambda path: None)

        assert plan.to_index == []
        assert plan.to_delete == []

    def test_skip_predicate(self):
        stored = {"/ws/A": _entry("/ws/A", 1000)}

        plan = compute_sync_plan(
            ["/ws/A", "/ws/B"],
            stored,
            lambda path: 9000,
            skip=lambda path, mtime: path == "/ws/B",
        )

        assert plan.to_index == ["/ws/A"]

    def test_duplicates_in_workspace_list(self):
        plan = compute_sync_plan(["/ws/A", "/ws/A"], {}, lambda path: 1)
        assert plan.to_index == ["/ws/A"]
