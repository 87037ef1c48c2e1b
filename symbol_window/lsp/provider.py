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

"""Symbol providers.

A provider turns a file path into its document symbol tree. The indexer only
depends on the SymbolProvider protocol; LSPSymbolProvider implements it with
one language server per language, started on first use.

Usage:
    async with LSPSymbolProvider("/path/to/workspace") as provider:
        symbols = await provider.get_symbols("/path/to/workspace/app.py")
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Set

from symbol_window.lsp.client import LSPClient, path_to_uri
from symbol_window.lsp.config import LANGUAGE_SERVERS, LSPServerConfig, get_server_for_file
from symbol_window.lsp.types import DocumentSymbol

logger = logging.getLogger(__name__)


class SymbolProvider(Protocol):
    """Source of hierarchical document symbols.

    Returning None or an empty list means the file has no symbols; raising
    means extraction failed and the file's previous record must be kept.
    """

    async def get_symbols(self, path: str) -> Optional[List[DocumentSymbol]]:
        ...


class LSPSymbolProvider:
    """SymbolProvider backed by language servers."""

    def __init__(
        self,
        workspace_root: str,
        servers: Optional[Mapping[str, LSPServerConfig]] = None,
        request_timeout: float = 30.0,
    ):
        """Initialize the provider.

        Args:
            workspace_root: Root directory handed to each server
            servers: Server table (default: LANGUAGE_SERVERS)
            request_timeout: Seconds to wait for each symbol request
        """
        self.workspace_root = str(Path(workspace_root).resolve())
        self.servers: Mapping[str, LSPServerConfig] = servers or LANGUAGE_SERVERS
        self.request_timeout = request_timeout
        self._root_uri = path_to_uri(self.workspace_root)
        self._clients: Dict[str, LSPClient] = {}
        self._unavailable: Set[str] = set()
        self._start_locks: Dict[str, asyncio.Lock] = {}

    async def __aenter__(self) -> "LSPSymbolProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop_all()

    async def _ensure_client(self, language: str) -> Optional[LSPClient]:
        if language in self._unavailable:
            return None

        lock = self._start_locks.setdefault(language, asyncio.Lock())
        async with lock:
            client = self._clients.get(language)
            if client is not None and client.is_running:
                return client

            config = self.servers[language]
            if not config.is_installed():
                logger.warning(
                    f"Server {config.name} not found ({config.command[0]}); "
                    f"{language} files will have no symbols"
                )
                if config.install_command:
                    logger.info(f"Install with: {config.install_command}")
                self._unavailable.add(language)
                return None

            client = LSPClient(config, self._root_uri, request_timeout=self.request_timeout)
            if not await client.start():
                self._unavailable.add(language)
                return None

            self._clients[language] = client
            return client

    async def get_symbols(self, path: str) -> Optional[List[DocumentSymbol]]:
        """Open the file in its language server and request its outline.

        Returns:
            Symbol tree, or None when no server handles this file type

        Raises:
            OSError: The file cannot be read
            LSPError, TimeoutError: The request failed
        """
        language = get_server_for_file(path, self.servers)
        if language is None:
            return None

        client = await self._ensure_client(language)
        if client is None:
            return None

        text = await asyncio.to_thread(Path(path).read_text, encoding="utf-8", errors="replace")
        uri = path_to_uri(path)
        client.open_document(uri, text)
        try:
            return await client.get_document_symbols(uri)
        finally:
            client.close_document(uri)

    @property
    def running_languages(self) -> List[str]:
        return [language for language, client in self._clients.items() if client.is_running]

    async def stop_all(self) -> None:
        for language, client in list(self._clients.items()):
            try:
                await client.stop()
            except Exception as e:
                logger.warning(f"Error stopping {language} server: {e}")
        self._clients.clear()
