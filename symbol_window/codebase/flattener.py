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

"""Flattening of hierarchical document symbols into storable records.

The symbol provider returns a tree (namespace > class > method ...). The
store keeps a flat list where each record remembers the dot-joined names of
its ancestors, e.g. ``Namespace.Class`` for a method, so searches can match on
context as well as on the symbol name.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from symbol_window.lsp.types import DocumentSymbol, Range

CONTAINER_SEPARATOR = "."


@dataclass(frozen=True)
class ExtractedSymbol:
    """One flattened symbol, ready to be persisted."""

    name: str
    detail: str
    kind: int
    range: Range
    selection_range: Range
    container_name: str = ""


def flatten_symbols(
    symbols: Optional[Iterable[DocumentSymbol]], parent_name: str = ""
) -> List[ExtractedSymbol]:
    """Flatten a symbol tree in pre-order (parents before children).

    Args:
        symbols: Top-level symbols; None or empty yields an empty list
        parent_name: Container path of the symbols being flattened

    Returns:
        Flat list of ExtractedSymbol with container names filled in
    """
    result: List[ExtractedSymbol] = []
    if not symbols:
        return result

    for symbol in symbols:
        result.append(
            ExtractedSymbol(
                name=symbol.name,
                detail=symbol.detail or "",
                kind=int(symbol.kind),
                range=symbol.range,
                selection_range=symbol.selection_range,
                container_name=parent_name,
            )
        )

        if symbol.children:
            full_name = (
                f"{parent_name}{CONTAINER_SEPARATOR}{symbol.name}" if parent_name else symbol.name
            )
            result.extend(flatten_symbols(symbol.children, full_name))

    return result
