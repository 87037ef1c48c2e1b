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

"""Command-line interface for the symbol index."""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from symbol_window.config import IndexerSettings, load_settings
from symbol_window.lsp.provider import LSPSymbolProvider
from symbol_window.lsp.types import SymbolKind
from symbol_window.manager import DEFAULT_SEARCH_LIMIT, IndexManager

logger = logging.getLogger(__name__)

console = Console()


def _add_root(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Workspace root (default: .)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="symbol-window", description="Workspace symbol index")
    parser.add_argument("--config", default=None, help="YAML settings file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Index new and modified files")
    _add_root(index_parser)

    rebuild_parser = subparsers.add_parser("rebuild", help="Rebuild the index")
    _add_root(rebuild_parser)
    rebuild_parser.add_argument(
        "--full", action="store_true", help="Drop every stored symbol and re-index"
    )

    search_parser = subparsers.add_parser("search", help="Search symbols")
    search_parser.add_argument("query", help="Whitespace-separated keywords")
    _add_root(search_parser)
    search_parser.add_argument("--limit", type=int, default=DEFAULT_SEARCH_LIMIT)
    search_parser.add_argument("--offset", type=int, default=0)

    stats_parser = subparsers.add_parser("stats", help="Show index statistics")
    _add_root(stats_parser)

    return parser


def _kind_name(kind: int) -> str:
    try:
        return SymbolKind(kind).name.replace("_", " ").title()
    except ValueError:
        return str(kind)


async def _run_indexing(manager: IndexManager, full: bool) -> int:
    if not await manager.start(sync=False):
        console.print("[red]Symbol database unavailable[/red]")
        return 1

    manager.on_progress.subscribe(lambda percent: logger.info(f"Indexing: {percent}%"))
    manager.readiness.resume()
    if full:
        await manager.rebuild_full()
    else:
        await manager.rebuild_incremental()
    await manager.wait_until_idle()

    stats = manager.stats()
    console.print(
        f"Indexed [bold]{stats['files']}[/bold] files, "
        f"[bold]{stats['symbols']}[/bold] symbols in {stats['db_path']}"
    )
    return 0


async def _run_search(manager: IndexManager, query: str, limit: int, offset: int) -> int:
    if not await manager.start(sync=False):
        console.print("[red]Symbol database unavailable[/red]")
        return 1

    results = manager.search(query, limit, offset)
    if not results:
        console.print("[dim]No symbols found[/dim]")
        return 0

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Container")
    table.add_column("Location")
    for entry in results:
        location = os.path.relpath(entry.file_path or "", manager.roots[0])
        table.add_row(
            entry.name,
            _kind_name(entry.kind),
            entry.container_name,
            f"{location}:{entry.selection_range.start.line + 1}",
        )
    console.print(table)
    return 0


async def _run_stats(manager: IndexManager) -> int:
    await manager.start(sync=False)
    table = Table(show_header=False)
    for key, value in manager.stats().items():
        table.add_row(key, str(value))
    console.print(table)
    return 0


async def _main(args: argparse.Namespace, settings: IndexerSettings) -> int:
    root = os.path.abspath(args.root)
    provider = LSPSymbolProvider(root)
    manager = IndexManager([root], provider, settings=settings, watch=False)
    try:
        if args.command == "index":
            return await _run_indexing(manager, full=False)
        if args.command == "rebuild":
            return await _run_indexing(manager, full=args.full)
        if args.command == "search":
            return await _run_search(manager, args.query, args.limit, args.offset)
        return await _run_stats(manager)
    finally:
        await manager.close()
        await provider.stop_all()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(args.config)
    return asyncio.run(_main(args, settings))


if __name__ == "__main__":
    sys.exit(main())
