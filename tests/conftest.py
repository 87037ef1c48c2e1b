# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Shared fixtures and fakes for the symbol index tests."""

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from symbol_window.codebase.discovery import FileDiscovery
from symbol_window.codebase.indexer import SymbolIndexer
from symbol_window.codebase.paths import canonicalize_path
from symbol_window.codebase.symbol_store import SymbolStore
from symbol_window.config import IndexerSettings
from symbol_window.lsp.types import DocumentSymbol, Range, SymbolKind
from symbol_window.readiness import ReadinessGate


def make_symbol(
    name: str,
    kind: int = SymbolKind.FUNCTION,
    line: int = 0,
    children: Optional[List[DocumentSymbol]] = None,
    detail: Optional[str] = None,
) -> DocumentSymbol:
    return DocumentSymbol(
        name=name,
        kind=kind,
        range=Range.from_tuple((line, 0, line + 2, 0)),
        selection_range=Range.from_tuple((line, 4, line, 4 + len(name))),
        detail=detail,
        children=children or [],
    )


def write_file(path: Path, content: str = "content\n", mtime_ms: Optional[int] = None) -> str:
    """Create a file (and parents) and return its canonical path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime_ms is not None:
        ns = mtime_ms * 1_000_000
        os.utime(path, ns=(ns, ns))
    return canonicalize_path(path)


class FakeProvider:
    """SymbolProvider returning canned symbol trees."""

    def __init__(self, symbols: Optional[Dict[str, List[DocumentSymbol]]] = None):
        self.symbols: Dict[str, Optional[List[DocumentSymbol]]] = symbols or {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def get_symbols(self, path: str) -> Optional[List[DocumentSymbol]]:
        self.calls.append(path)
        if self.gate is not None:
            await self.gate.wait()
        if path in self.failures:
            raise self.failures[path]
        return self.symbols.get(path, [])


class FakeScanner:
    """FileScanner returning a fixed file list."""

    def __init__(self, files: Optional[List[str]] = None):
        self.files: List[str] = files or []
        self.calls = 0

    async def list_files(self, root, include_globs, exclude_globs) -> List[str]:
        self.calls += 1
        return [path for path in self.files if path.startswith(root)]


@pytest.fixture
def workspace(tmp_path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def store(tmp_path):
    store = SymbolStore(tmp_path / "db" / "symbols.db")
    store.open()
    yield store
    store.close()


@pytest.fixture
def settings() -> IndexerSettings:
    return IndexerSettings(batch_delay_ms=0)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def readiness() -> ReadinessGate:
    return ReadinessGate(available=False)


@pytest.fixture
def indexer(store, provider, scanner, settings, readiness, workspace) -> SymbolIndexer:
    discovery = FileDiscovery(scanner, [workspace])
    return SymbolIndexer(store, provider, discovery, settings=settings, readiness=readiness)
