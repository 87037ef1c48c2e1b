# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for the command-line interface."""

import pytest

from symbol_window import cli
from symbol_window.lsp.types import SymbolKind

from tests.conftest import FakeProvider, FakeScanner, make_symbol, write_file


class StoppableProvider(FakeProvider):
    async def stop_all(self) -> None:
        self.stopped = True


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "symbols.yaml"
    path.write_text(f"storage_dir: {tmp_path / 'cache'}\nbatch_delay_ms: 0\n")
    return str(path)


@pytest.fixture
def fake_workspace(workspace, monkeypatch):
    files = {
        write_file(workspace / "billing.py"): [
            make_symbol("InvoiceService", kind=SymbolKind.CLASS, line=3)
        ],
    }
    monkeypatch.setattr(cli, "LSPSymbolProvider", lambda root: StoppableProvider(dict(files)))
    monkeypatch.setattr(
        "symbol_window.manager.RipgrepScanner", lambda rg_path: FakeScanner(list(files))
    )
    return workspace


class TestParser:
    def test_search_defaults(self):
        args = cli.build_parser().parse_args(["search", "user"])

        assert args.command == "search"
        assert args.root == "."
        assert args.limit == cli.DEFAULT_SEARCH_LIMIT
        assert args.offset == 0

    def test_rebuild_full_flag(self):
        args = cli.build_parser().parse_args(["rebuild", "/ws", "--full"])
        assert (args.root, args.full) == ("/ws", True)

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestCommands:
    def test_index_then_search(self, fake_workspace, config_file, capsys):
        assert cli.main(["--config", config_file, "index", str(fake_workspace)]) == 0
        assert "Indexed 1 files, 1 symbols" in capsys.readouterr().out

        assert cli.main(["--config", config_file, "search", "invoice", str(fake_workspace)]) == 0
        out = capsys.readouterr().out
        assert "InvoiceService" in out
        assert "billing.py:4" in out

    def test_search_without_matches(self, fake_workspace, config_file, capsys):
        cli.main(["--config", config_file, "rebuild", "--full", str(fake_workspace)])
        capsys.readouterr()

        assert cli.main(["--config", config_file, "search", "nothing", str(fake_workspace)]) == 0
        assert "No symbols found" in capsys.readouterr().out

    def test_stats(self, fake_workspace, config_file, capsys):
        assert cli.main(["--config", config_file, "stats", str(fake_workspace)]) == 0
        assert "db_path" in capsys.readouterr().out
