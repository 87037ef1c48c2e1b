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

"""Language Server Protocol integration for symbol extraction.

Only the document symbol request is used; language servers are started on
demand, one per language.
"""

from symbol_window.lsp.client import LSPClient, LSPError
from symbol_window.lsp.config import LANGUAGE_SERVERS, LSPServerConfig, get_server_for_file
from symbol_window.lsp.provider import LSPSymbolProvider, SymbolProvider
from symbol_window.lsp.types import DocumentSymbol, Position, Range, SymbolKind

__all__ = [
    # Client
    "LSPClient",
    "LSPError",
    "LSPServerConfig",
    "LANGUAGE_SERVERS",
    "get_server_for_file",
    # Providers
    "SymbolProvider",
    "LSPSymbolProvider",
    # Types
    "SymbolKind",
    "Position",
    "Range",
    "DocumentSymbol",
]
