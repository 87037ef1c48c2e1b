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

"""Incremental workspace symbol index.

Keeps a SQLite cache of the document symbols of every file in a workspace,
updated incrementally from file system events, and answers multi-keyword
substring searches over it.

Package Structure:
    config.py              - IndexerSettings and YAML loading
    events.py              - EventEmitter / Subscription
    readiness.py           - Symbol provider availability gate
    manager.py             - IndexManager, the public entry point
    cli.py                 - symbol-window command line
    codebase/              - Discovery, ignore rules, indexer, store, watcher
    lsp/                   - Language server client and symbol provider

Usage:
    from symbol_window import IndexManager, LSPSymbolProvider

    manager = IndexManager("/path/to/workspace", LSPSymbolProvider("/path/to/workspace"))
    await manager.start()
    manager.readiness.resume()
    results = manager.search("user controller")
"""

from symbol_window.config import IndexerSettings, load_settings
from symbol_window.events import EventEmitter, Subscription
from symbol_window.lsp.provider import LSPSymbolProvider, SymbolProvider
from symbol_window.manager import IndexManager
from symbol_window.readiness import ReadinessGate

__version__ = "0.1.0"

__all__ = [
    "IndexManager",
    "IndexerSettings",
    "load_settings",
    "EventEmitter",
    "Subscription",
    "ReadinessGate",
    "SymbolProvider",
    "LSPSymbolProvider",
]
