# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for the LSP client framing, types and symbol provider."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from symbol_window.lsp.client import LSPClient, LSPError, encode_message, parse_message
from symbol_window.lsp.config import LANGUAGE_SERVERS, LSPServerConfig, get_server_for_file
from symbol_window.lsp.provider import LSPSymbolProvider
from symbol_window.lsp.types import DocumentSymbol, SymbolKind


def _frame(payload: dict) -> bytes:
    body = json.dumps(payload).encode("utf-8")
    return b"Content-Length: " + str(len(body)).encode() + b"\r\n\r\n" + body


class TestMessageFraming:
    """Content-Length framing."""

    def test_parse_complete_message(self):
        message, rest = parse_message(_frame({"id": 1, "result": None}) + b"tail")

        assert message == {"id": 1, "result": None}
        assert rest == b"tail"

    def test_incomplete_message_waits_for_more(self):
        frame = _frame({"id": 1, "result": [1, 2, 3]})

        assert parse_message(frame[:10]) == (None, frame[:10])
        assert parse_message(frame[:-2]) == (None, frame[:-2])

    def test_two_messages_in_one_buffer(self):
        buffer = _frame({"id": 1}) + _frame({"id": 2})

        first, buffer = parse_message(buffer)
        second, buffer = parse_message(buffer)

        assert (first["id"], second["id"], buffer) == (1, 2, b"")

    def test_extra_headers_and_case(self):
        body = b'{"id": 3}'
        buffer = (
            b"content-type: application/vscode-jsonrpc\r\ncontent-length: "
            + str(len(body)).encode()
            + b"\r\n\r\n"
            + body
        )

        assert parse_message(buffer)[0] == {"id": 3}

    def test_invalid_json_is_dropped(self):
        message, rest = parse_message(b"Content-Length: 3\r\n\r\n{x}more")
        assert message is None
        assert rest == b"more"

    def test_multibyte_content_length_counts_bytes(self):
        framed = encode_message({"name": "größe"})
        assert parse_message(framed)[0] == {"name": "größe"}


class TestClientDispatch:
    """Response routing without a real server."""

    @pytest.fixture
    def client(self):
        return LSPClient(LANGUAGE_SERVERS["python"], "file:///ws")

    @pytest.mark.asyncio
    async def test_response_resolves_pending_future(self, client):
        future = asyncio.get_running_loop().create_future()
        client._pending_requests[7] = future

        client._handle_message({"jsonrpc": "2.0", "id": 7, "result": [{"name": "x"}]})

        assert future.result() == [{"name": "x"}]
        assert 7 not in client._pending_requests

    @pytest.mark.asyncio
    async def test_error_response_raises(self, client):
        future = asyncio.get_running_loop().create_future()
        client._pending_requests[8] = future

        client._handle_message({"id": 8, "error": {"code": -32601, "message": "no such method"}})

        with pytest.raises(LSPError, match="no such method"):
            future.result()

    def test_server_request_gets_null_answer(self, client):
        client._write_message = MagicMock()

        client._handle_message({"id": 99, "method": "workspace/configuration", "params": {}})

        client._write_message.assert_called_once_with({"jsonrpc": "2.0", "id": 99, "result": None})

    @pytest.mark.asyncio
    async def test_request_when_not_running(self, client):
        with pytest.raises(LSPError):
            await client._send_request("initialize", {})

    @pytest.mark.asyncio
    async def test_document_symbols_require_initialization(self, client):
        with pytest.raises(LSPError):
            await client.get_document_symbols("file:///ws/a.py")

    @pytest.mark.asyncio
    async def test_document_symbols_are_parsed(self, client):
        client._initialized = True
        client._send_request = AsyncMock(
            return_value=[
                {
                    "name": "Service",
                    "kind": 5,
                    "range": {"start": {"line": 0, "character": 0}, "end": {"line": 9, "character": 0}},
                    "selectionRange": {
                        "start": {"line": 0, "character": 6},
                        "end": {"line": 0, "character": 13},
                    },
                    "children": [
                        {
                            "name": "run",
                            "kind": 6,
                            "range": {
                                "start": {"line": 1, "character": 4},
                                "end": {"line": 2, "character": 0},
                            },
                            "selectionRange": {
                                "start": {"line": 1, "character": 8},
                                "end": {"line": 1, "character": 11},
                            },
                        }
                    ],
                }
            ]
        )

        symbols = await client.get_document_symbols("file:///ws/a.py")

        assert symbols[0].name == "Service"
        assert symbols[0].kind == SymbolKind.CLASS
        assert symbols[0].selection_range.as_tuple() == (0, 6, 0, 13)
        assert [child.name for child in symbols[0].children] == ["run"]

    @pytest.mark.asyncio
    async def test_null_result_means_no_symbols(self, client):
        client._initialized = True
        client._send_request = AsyncMock(return_value=None)

        assert await client.get_document_symbols("file:///ws/a.py") == []

    @pytest.mark.asyncio
    async def test_start_with_missing_binary(self):
        config = LSPServerConfig(
            name="Missing", language_id="x", file_extensions=[".x"], command=["no-such-lsp-server"]
        )
        client = LSPClient(config, "file:///ws")

        assert await client.start() is False
        assert not client.is_running


class TestTypes:
    """Protocol payload parsing."""

    def test_symbol_information_becomes_childless_symbol(self):
        symbol = DocumentSymbol.from_dict(
            {
                "name": "helper",
                "kind": 12,
                "location": {
                    "uri": "file:///ws/a.py",
                    "range": {"start": {"line": 4, "character": 0}, "end": {"line": 6, "character": 1}},
                },
                "containerName": "module",
            }
        )

        assert symbol.name == "helper"
        assert symbol.range == symbol.selection_range
        assert symbol.range.as_tuple() == (4, 0, 6, 1)
        assert symbol.children == []

    def test_missing_selection_range_falls_back_to_range(self):
        span = {"start": {"line": 1, "character": 0}, "end": {"line": 3, "character": 0}}
        symbol = DocumentSymbol.from_dict({"name": "x", "kind": 13, "range": span})

        assert symbol.selection_range.as_tuple() == (1, 0, 3, 0)


class TestServerConfig:
    """Language server lookup."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/ws/app.py", "python"),
            ("/ws/Component.TSX", "typescript"),
            ("/ws/main.go", "go"),
            ("/ws/lib.rs", "rust"),
            ("/ws/README.md", None),
            ("/ws/Makefile", None),
        ],
    )
    def test_get_server_for_file(self, path, expected):
        assert get_server_for_file(path) == expected

    def test_custom_server_table(self):
        servers = {
            "toy": LSPServerConfig(
                name="Toy", language_id="toy", file_extensions=["Toyfile"], command=["toy-ls"]
            )
        }

        assert get_server_for_file("/ws/Toyfile", servers) == "toy"
        assert get_server_for_file("/ws/app.py", servers) is None


class TestLSPSymbolProvider:
    """Provider behaviour without real servers."""

    @pytest.mark.asyncio
    async def test_unhandled_file_type_has_no_symbols(self, workspace):
        provider = LSPSymbolProvider(str(workspace))

        assert await provider.get_symbols(str(workspace / "notes.txt")) is None

    @pytest.mark.asyncio
    async def test_missing_server_has_no_symbols(self, workspace):
        servers = {
            "python": LSPServerConfig(
                name="Absent",
                language_id="python",
                file_extensions=[".py"],
                command=["no-such-python-server"],
            )
        }
        path = workspace / "a.py"
        path.write_text("def f():\n    pass\n")

        async with LSPSymbolProvider(str(workspace), servers=servers) as provider:
            assert await provider.get_symbols(str(path)) is None
            assert await provider.get_symbols(str(path)) is None
            assert provider.running_languages == []

    @pytest.mark.asyncio
    async def test_opens_requests_and_closes_document(self, workspace):
        path = workspace / "a.py"
        path.write_text("class A:\n    pass\n")
        provider = LSPSymbolProvider(str(workspace))
        client = MagicMock()
        client.get_document_symbols = AsyncMock(return_value=[])
        provider._ensure_client = AsyncMock(return_value=client)

        assert await provider.get_symbols(str(path)) == []

        uri = client.open_document.call_args[0][0]
        assert uri.startswith("file://") and uri.endswith("/a.py")
        assert client.open_document.call_args[0][1] == "class A:\n    pass\n"
        client.close_document.assert_called_once_with(uri)

    @pytest.mark.asyncio
    async def test_request_failure_propagates_and_closes(self, workspace):
        path = workspace / "a.py"
        path.write_text("x = 1\n")
        provider = LSPSymbolProvider(str(workspace))
        client = MagicMock()
        client.get_document_symbols = AsyncMock(side_effect=TimeoutError("slow server"))
        provider._ensure_client = AsyncMock(return_value=client)

        with pytest.raises(TimeoutError):
            await provider.get_symbols(str(path))
        client.close_document.assert_called_once()
