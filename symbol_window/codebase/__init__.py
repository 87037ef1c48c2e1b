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

"""Symbol indexing: discovery, ignore rules, flattening, storage, sync."""

from symbol_window.codebase.discovery import FileDiscovery, FileScanner, RipgrepScanner
from symbol_window.codebase.flattener import ExtractedSymbol, flatten_symbols
from symbol_window.codebase.ignore_patterns import ExcludeFilter, FastIgnoreFilter
from symbol_window.codebase.indexer import FailureTracker, SymbolIndexer
from symbol_window.codebase.paths import canonicalize_path
from symbol_window.codebase.symbol_store import (
    SCHEMA_VERSION,
    FileEntry,
    StoreCorruptedError,
    StoreError,
    SymbolEntry,
    SymbolStore,
)
from symbol_window.codebase.sync import SyncPlan, compute_sync_plan
from symbol_window.codebase.watcher import IndexEventHandler, IndexWatcher

__all__ = [
    "FileDiscovery",
    "FileScanner",
    "RipgrepScanner",
    "ExtractedSymbol",
    "flatten_symbols",
    "ExcludeFilter",
    "FastIgnoreFilter",
    "FailureTracker",
    "SymbolIndexer",
    "canonicalize_path",
    "SCHEMA_VERSION",
    "FileEntry",
    "StoreCorruptedError",
    "StoreError",
    "SymbolEntry",
    "SymbolStore",
    "SyncPlan",
    "compute_sync_plan",
    "IndexEventHandler",
    "IndexWatcher",
]
