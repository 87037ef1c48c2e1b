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

"""Path canonicalization shared by discovery, the watcher and the store.

Paths reach the indexer from ripgrep output, from the file system observer
and from the store itself. They must compare equal for the same file, so
every path is canonicalized before it is used as a key.
"""

import os
from pathlib import Path
from typing import Iterable, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


def canonicalize_path(path: PathLike) -> str:
    """Return the canonical absolute form of a path.

    - made absolute and normalized (``.``/``..`` collapsed)
    - separators converted to the platform separator
    - drive letter lower-cased (``C:\\x`` and ``c:\\x`` are the same file)

    Symlinks are not resolved; the path a file was discovered under is its
    identity.
    """
    normalized = os.path.normpath(os.path.abspath(os.fspath(path)))
    if os.sep != "/":
        normalized = normalized.replace("/", os.sep)
    drive, rest = os.path.splitdrive(normalized)
    if drive and len(drive) == 2 and drive[1] == ":":
        normalized = drive.lower() + rest
    return normalized


def find_root(path: PathLike, roots: Iterable[PathLike]) -> Optional[str]:
    """Return the (canonical) workspace root containing path, if any.

    The deepest matching root wins when roots are nested.
    """
    canonical = canonicalize_path(path)
    best: Optional[str] = None
    for root in roots:
        root_str = canonicalize_path(root)
        if canonical == root_str or canonical.startswith(root_str.rstrip(os.sep) + os.sep):
            if best is None or len(root_str) > len(best):
                best = root_str
    return best


def is_within(path: PathLike, parents: Iterable[PathLike]) -> bool:
    """Return True if path is one of parents or lies below one of them."""
    canonical = canonicalize_path(path)
    for parent in parents:
        parent_str = canonicalize_path(parent)
        if canonical == parent_str or canonical.startswith(parent_str.rstrip(os.sep) + os.sep):
            return True
    return False


def relative_to_root(path: PathLike, root: PathLike) -> str:
    """Return path relative to root using forward slashes."""
    rel = Path(canonicalize_path(path)).relative_to(canonicalize_path(root))
    return rel.as_posix()
