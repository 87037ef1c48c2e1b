# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for ripgrep-based file discovery."""

import os
import shutil

import pytest

from symbol_window.codebase.discovery import FileDiscovery, RipgrepScanner
from symbol_window.codebase.paths import canonicalize_path

from tests.conftest import FakeScanner, write_file


class TestRipgrepScanner:
    """Command construction and failure handling."""

    def test_build_command(self):
        scanner = RipgrepScanner(rg_path="rg")

        cmd = scanner.build_command(["src/**"], ["**/*.min.js", "dist/**"])

        assert cmd == [
            "rg",
            "--files",
            "--glob",
            "src/**",
            "--glob",
            "!**/*.min.js",
            "--glob",
            "!dist/**",
        ]

    @pytest.mark.asyncio
    async def test_missing_binary_returns_empty(self, workspace):
        scanner = RipgrepScanner(rg_path=str(workspace / "no-such-rg"))

        assert await scanner.list_files(str(workspace), [], []) == []

    @pytest.mark.asyncio
    async def test_lists_files_with_ripgrep(self, workspace):
        if shutil.which("rg") is None:
            pytest.skip("ripgrep not installed")
        write_file(workspace / "src" / "app.py")
        write_file(workspace / "README.md")
        write_file(workspace / "dist" / "bundle.js")

        files = await RipgrepScanner().list_files(str(workspace), [], ["dist/**"])

        assert sorted(files) == sorted(
            [str(workspace / "src" / "app.py"), str(workspace / "README.md")]
        )

    @pytest.mark.asyncio
    async def test_nothing_matched_is_empty_success(self, workspace):
        if shutil.which("rg") is None:
            pytest.skip("ripgrep not installed")
        write_file(workspace / "a.txt")

        assert await RipgrepScanner().list_files(str(workspace), ["*.none"], []) == []


class TestFileDiscovery:
    """Canonicalization, de-duplication and error isolation."""

    @pytest.mark.asyncio
    async def test_paths_are_canonical_and_unique(self, workspace):
        raw = str(workspace / "src" / ".." / "src" / "a.py")
        canonical = canonicalize_path(workspace / "src" / "a.py")
        scanner = FakeScanner([raw, canonical, canonical])

        files = await FileDiscovery(scanner, [workspace]).discover()

        assert files == [canonical]

    @pytest.mark.asyncio
    async def test_multiple_roots(self, tmp_path):
        first = write_file(tmp_path / "one" / "a.py")
        second = write_file(tmp_path / "two" / "b.py")
        scanner = FakeScanner([first, second])

        files = await FileDiscovery(scanner, [tmp_path / "one", tmp_path / "two"]).discover()

        assert files == [first, second]
        assert scanner.calls == 2

    @pytest.mark.asyncio
    async def test_scanner_errors_yield_empty_root(self, workspace):
        class BrokenScanner:
            async def list_files(self, root, include_globs, exclude_globs):
                raise RuntimeError("boom")

        assert await FileDiscovery(BrokenScanner(), [workspace]).discover() == []

    @pytest.mark.asyncio
    async def test_globs_are_passed_to_scanner(self, workspace):
        seen = {}

        class RecordingScanner:
            async def list_files(self, root, include_globs, exclude_globs):
                seen.update(root=root, include=include_globs, exclude=exclude_globs)
                return []

        await FileDiscovery(RecordingScanner(), [workspace], ["*.py"], ["tests/**"]).discover()

        assert seen == {
            "root": os.path.abspath(workspace),
            "include": ["*.py"],
            "exclude": ["tests/**"],
        }
