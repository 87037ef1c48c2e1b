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

"""Minimal LSP client: process lifecycle, JSON-RPC framing, document symbols."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from symbol_window.lsp.config import LSPServerConfig
from symbol_window.lsp.types import DocumentSymbol

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = b"\r\n\r\n"


class LSPError(Exception):
    """The server answered a request with an error, or is not running."""


def path_to_uri(path: str) -> str:
    """Convert a file path to a file:// URI."""
    return Path(os.path.abspath(path)).as_uri()


def encode_message(message: Dict[str, Any]) -> bytes:
    """Frame a JSON-RPC message with its Content-Length header."""
    body = json.dumps(message).encode("utf-8")
    return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body


def parse_message(buffer: bytes) -> Tuple[Optional[Dict[str, Any]], bytes]:
    """Parse one framed message from the front of buffer.

    Returns:
        Tuple of (message or None if incomplete/invalid, remaining buffer)
    """
    header_end = buffer.find(HEADER_SEPARATOR)
    if header_end == -1:
        return None, buffer

    content_length = None
    for line in buffer[:header_end].decode("ascii", errors="replace").split("\r\n"):
        name, _, value = line.partition(":")
        if name.strip().lower() == "content-length":
            try:
                content_length = int(value.strip())
            except ValueError:
                content_length = None
            break

    content_start = header_end + len(HEADER_SEPARATOR)
    if not content_length:
        # Header without a usable length: drop it and resynchronize
        return None, buffer[content_start:]

    content_end = content_start + content_length
    if len(buffer) < content_end:
        return None, buffer

    content = buffer[content_start:content_end]
    remaining = buffer[content_end:]
    try:
        return json.loads(content.decode("utf-8")), remaining
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.error(f"Failed to parse message: {content[:100]!r}")
        return None, remaining


class LSPClient:
    """Client for one language server process speaking LSP over stdio."""

    def __init__(self, config: LSPServerConfig, root_uri: str, request_timeout: float = 30.0):
        """Initialize the LSP client.

        Args:
            config: Server configuration
            root_uri: Root URI of the workspace
            request_timeout: Seconds to wait for each response
        """
        self.config = config
        self.root_uri = root_uri
        self.request_timeout = request_timeout
        self._process: Optional[asyncio.subprocess.Process] = None
        self._request_id = 0
        self._pending_requests: Dict[int, asyncio.Future] = {}
        self._initialized = False
        self._capabilities: Dict[str, Any] = {}
        self._open_documents: Dict[str, int] = {}  # uri -> version
        self._reader_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def supports_document_symbols(self) -> bool:
        return bool(self._capabilities.get("documentSymbolProvider"))

    async def start(self) -> bool:
        """Start and initialize the language server.

        Returns:
            True if the server is up
        """
        if self.is_running:
            return True

        cmd = self.config.full_command
        logger.info(f"Starting LSP server: {' '.join(cmd)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError:
            logger.error(f"LSP server not found: {cmd[0]}")
            if self.config.install_command:
                logger.info(f"Install with: {self.config.install_command}")
            return False
        except OSError as e:
            logger.error(f"Failed to start LSP server {self.config.name}: {e}")
            return False

        self._reader_task = asyncio.create_task(self._read_messages())

        try:
            await self._initialize()
        except Exception as e:
            logger.error(f"LSP server {self.config.name} failed to initialize: {e}")
            await self.stop()
            return False
        return True

    async def stop(self) -> None:
        """Shut the server down, killing it if it does not exit in time."""
        process = self._process
        if process is None:
            return

        try:
            if self.is_running and self._initialized:
                await self._send_request("shutdown", None, timeout=5.0)
                self._send_notification("exit", None)
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        except Exception as e:
            logger.warning(f"Error during shutdown of {self.config.name}: {e}")
            if process.returncode is None:
                process.kill()
        finally:
            if self._reader_task:
                self._reader_task.cancel()
                try:
                    await self._reader_task
                except asyncio.CancelledError:
                    pass
                self._reader_task = None

            self._fail_pending(LSPError(f"{self.config.name} stopped"))
            self._process = None
            self._initialized = False
            self._open_documents.clear()

    async def _initialize(self) -> None:
        params = {
            "processId": os.getpid(),
            "rootUri": self.root_uri,
            "capabilities": {
                "textDocument": {
                    "documentSymbol": {"hierarchicalDocumentSymbolSupport": True},
                },
                "workspace": {"workspaceFolders": True},
            },
            "initializationOptions": self.config.initialization_options,
            "workspaceFolders": [{"uri": self.root_uri, "name": Path(self.root_uri).name}],
        }

        result = await self._send_request("initialize", params)
        self._capabilities = (result or {}).get("capabilities", {})
        self._initialized = True
        self._send_notification("initialized", {})
        logger.info(f"LSP server {self.config.name} initialized")

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _send_request(self, method: str, params: Any, timeout: Optional[float] = None) -> Any:
        """Send a request and wait for its response.

        Raises:
            LSPError: Server not running or error response
            TimeoutError: No response in time
        """
        if not self.is_running:
            raise LSPError(f"{self.config.name} is not running")

        request_id = self._next_id()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        self._write_message({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})

        try:
            return await asyncio.wait_for(future, timeout=timeout or self.request_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Request {method} timed out")
        finally:
            self._pending_requests.pop(request_id, None)

    def _send_notification(self, method: str, params: Any) -> None:
        if not self.is_running:
            return
        self._write_message({"jsonrpc": "2.0", "method": method, "params": params})

    def _write_message(self, message: Dict[str, Any]) -> None:
        if not self._process or not self._process.stdin:
            return
        try:
            self._process.stdin.write(encode_message(message))
        except (BrokenPipeError, ConnectionResetError, OSError) as e:
            logger.error(f"Failed to write to {self.config.name}: {e}")

    async def _read_messages(self) -> None:
        if not self._process or not self._process.stdout:
            return

        buffer = b""
        try:
            while True:
                chunk = await self._process.stdout.read(4096)
                if not chunk:
                    break
                buffer += chunk

                while True:
                    message, buffer = parse_message(buffer)
                    if message is None:
                        break
                    self._handle_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error reading from {self.config.name}: {e}")

        self._fail_pending(LSPError(f"{self.config.name} closed its output"))

    def _handle_message(self, message: Dict[str, Any]) -> None:
        if "id" in message and "method" in message:
            # Server-to-client request (workspace/configuration etc.): answer with null
            self._write_message({"jsonrpc": "2.0", "id": message["id"], "result": None})
            return

        if "id" in message:
            future = self._pending_requests.pop(message["id"], None)
            if future is None or future.done():
                return
            if "error" in message:
                error = message["error"] or {}
                future.set_exception(LSPError(error.get("message", "Unknown error")))
            else:
                future.set_result(message.get("result"))
            return

        logger.debug(f"{self.config.name} notification: {message.get('method', '')}")

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()

    # Public API methods

    def open_document(self, uri: str, text: str, language_id: Optional[str] = None) -> None:
        if uri in self._open_documents:
            return
        self._open_documents[uri] = 1
        self._send_notification(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": uri,
                    "languageId": language_id or self.config.language_id,
                    "version": 1,
                    "text": text,
                }
            },
        )

    def close_document(self, uri: str) -> None:
        if self._open_documents.pop(uri, None) is None:
            return
        self._send_notification("textDocument/didClose", {"textDocument": {"uri": uri}})

    async def get_document_symbols(self, uri: str) -> List[DocumentSymbol]:
        """Request the symbol outline of an open document.

        Unlike the other helpers this raises on failure, so callers can tell
        an empty outline from a failed request.

        Raises:
            LSPError: The server is not ready or answered with an error
            TimeoutError: No response in time
        """
        if not self._initialized:
            raise LSPError(f"{self.config.name} is not initialized")

        result = await self._send_request(
            "textDocument/documentSymbol", {"textDocument": {"uri": uri}}
        )
        if not result:
            return []
        return [DocumentSymbol.from_dict(item) for item in result if isinstance(item, dict)]
