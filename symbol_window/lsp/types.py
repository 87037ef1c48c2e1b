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

"""LSP data types used by the symbol index.

Only the subset of the protocol needed for document symbols is modelled here.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple


class SymbolKind(IntEnum):
    """Symbol kinds as defined by the Language Server Protocol."""

    FILE = 1
    MODULE = 2
    NAMESPACE = 3
    PACKAGE = 4
    CLASS = 5
    METHOD = 6
    PROPERTY = 7
    FIELD = 8
    CONSTRUCTOR = 9
    ENUM = 10
    INTERFACE = 11
    FUNCTION = 12
    VARIABLE = 13
    CONSTANT = 14
    STRING = 15
    NUMBER = 16
    BOOLEAN = 17
    ARRAY = 18
    OBJECT = 19
    KEY = 20
    NULL = 21
    ENUM_MEMBER = 22
    STRUCT = 23
    EVENT = 24
    OPERATOR = 25
    TYPE_PARAMETER = 26


@dataclass(frozen=True)
class Position:
    """Zero-based line/character position in a document."""

    line: int
    character: int

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "character": self.character}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(line=int(data.get("line", 0)), character=int(data.get("character", 0)))


@dataclass(frozen=True)
class Range:
    """Span between two positions (end exclusive)."""

    start: Position
    end: Position

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Range":
        return cls(
            start=Position.from_dict(data.get("start", {})),
            end=Position.from_dict(data.get("end", {})),
        )

    @classmethod
    def from_tuple(cls, values: Tuple[int, int, int, int]) -> "Range":
        """Build a range from (start_line, start_char, end_line, end_char)."""
        start_line, start_char, end_line, end_char = values
        return cls(Position(start_line, start_char), Position(end_line, end_char))

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.start.line, self.start.character, self.end.line, self.end.character)


@dataclass
class DocumentSymbol:
    """Hierarchical symbol as returned by textDocument/documentSymbol."""

    name: str
    kind: int
    range: Range
    selection_range: Range
    detail: Optional[str] = None
    children: List["DocumentSymbol"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentSymbol":
        """Parse a DocumentSymbol or a flat SymbolInformation payload.

        SymbolInformation carries a location instead of ranges and has no
        children; its location range is used for both spans.
        """
        if "location" in data and "range" not in data:
            span = Range.from_dict(data["location"].get("range", {}))
            return cls(
                name=data.get("name", ""),
                kind=int(data.get("kind", 0)),
                range=span,
                selection_range=span,
                detail=data.get("detail"),
            )

        span = Range.from_dict(data.get("range", {}))
        selection = data.get("selectionRange")
        return cls(
            name=data.get("name", ""),
            kind=int(data.get("kind", 0)),
            range=span,
            selection_range=Range.from_dict(selection) if selection else span,
            detail=data.get("detail"),
            children=[cls.from_dict(child) for child in data.get("children") or []],
        )
