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

"""Ignore rules for symbol indexing.

Two layers decide which files reach the symbol provider:

- FastIgnoreFilter: an in-memory approximation of the root ``.gitignore``
  (plain names only) used on every file system event. It never spawns a
  process, so it can keep up with bursts of watcher events.
- ExcludeFilter: the authoritative check applied to each batch right before
  indexing. It evaluates the configured include/exclude globs and asks
  ``git check-ignore`` about the survivors.

Design Principles:
- The fast filter may let ignored files through; the batch filter catches them
- Errors from git never drop files (fail open)
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pathspec

from symbol_window.codebase.paths import (
    PathLike,
    canonicalize_path,
    find_root,
    is_within,
    relative_to_root,
)
from symbol_window.config import DEFAULT_STORAGE_DIR_NAME

logger = logging.getLogger(__name__)

GITIGNORE_FILENAME = ".gitignore"

# Always ignored at the top of each root, whatever the .gitignore says
DEFAULT_ROOT_IGNORED: Set[str] = {
    ".git",
    ".DS_Store",
    ".vscode",
    DEFAULT_STORAGE_DIR_NAME,
}

_GLOB_CHARS = re.compile(r"[*?\[\]]")


def parse_gitignore(text: str) -> Tuple[Set[str], Set[str]]:
    """Extract plain names from .gitignore content.

    Only simple entries are understood; anything needing glob evaluation is
    left to the batch filter.

    Returns:
        (root_names, anywhere_names)
    """
    root_names: Set[str] = set()
    anywhere_names: Set[str] = set()

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        if _GLOB_CHARS.search(line):
            continue

        anchored = line.startswith("/")
        if anchored:
            line = line[1:]
        line = line.rstrip("/")

        # Nested paths (a/b) are not handled here
        if not line or "/" in line:
            continue

        if anchored:
            root_names.add(line)
        else:
            anywhere_names.add(line)

    return root_names, anywhere_names


class FastIgnoreFilter:
    """Name-set approximation of the root .gitignore of each workspace root.

    extra_ignored lists paths (files or directories) that are always ignored
    wherever they live, such as the symbol database itself.
    """

    def __init__(
        self, roots: Iterable[PathLike], extra_ignored: Optional[Iterable[PathLike]] = None
    ):
        self.roots: List[str] = [canonicalize_path(root) for root in roots]
        self.extra_ignored: List[str] = [canonicalize_path(path) for path in extra_ignored or ()]
        self._root_ignored: Dict[str, Set[str]] = {}
        self._anywhere_ignored: Dict[str, Set[str]] = {}
        self.reload()

    def reload(self, root: Optional[PathLike] = None) -> None:
        """Reset to the defaults and re-read .gitignore.

        Args:
            root: Only reload this root (default: all roots)
        """
        targets = [canonicalize_path(root)] if root is not None else self.roots
        for target in targets:
            root_names = set(DEFAULT_ROOT_IGNORED)
            anywhere_names: Set[str] = set()

            gitignore = Path(target) / GITIGNORE_FILENAME
            if gitignore.is_file():
                try:
                    parsed_root, parsed_anywhere = parse_gitignore(
                        gitignore.read_text(encoding="utf-8", errors="replace")
                    )
                    root_names |= parsed_root
                    anywhere_names |= parsed_anywhere
                except OSError as e:
                    logger.warning(f"Failed to read {gitignore}: {e}")

            self._root_ignored[target] = root_names
            self._anywhere_ignored[target] = anywhere_names
            logger.debug(
                f"Ignore filter for {target}: {len(root_names)} root, "
                f"{len(anywhere_names)} anywhere entries"
            )

    def root_ignored(self, root: PathLike) -> Set[str]:
        return set(self._root_ignored.get(canonicalize_path(root), ()))

    def anywhere_ignored(self, root: PathLike) -> Set[str]:
        return set(self._anywhere_ignored.get(canonicalize_path(root), ()))

    def should_ignore(self, path: PathLike) -> bool:
        """Check a path against the name sets of its workspace root.

        Paths outside every root are never ignored unless listed in
        extra_ignored.
        """
        if self.extra_ignored and is_within(path, self.extra_ignored):
            return True
        root = find_root(path, self.roots)
        if root is None:
            return False

        relative = relative_to_root(path, root)
        if relative in ("", "."):
            return False
        segments = relative.split("/")

        if segments[0] in self._root_ignored.get(root, DEFAULT_ROOT_IGNORED):
            return True
        anywhere = self._anywhere_ignored.get(root, set())
        return any(segment in anywhere for segment in segments)

    def is_gitignore(self, path: PathLike) -> bool:
        """True when path is the .gitignore of one of the roots."""
        canonical = canonicalize_path(path)
        return any(canonical == os.path.join(root, GITIGNORE_FILENAME) for root in self.roots)


class ExcludeFilter:
    """Authoritative per-batch filter: configured globs, then git check-ignore."""

    def __init__(
        self,
        roots: Iterable[PathLike],
        include_globs: Optional[Sequence[str]] = None,
        exclude_globs: Optional[Sequence[str]] = None,
        git_path: str = "git",
    ):
        self.roots: List[str] = [canonicalize_path(root) for root in roots]
        self.git_path = git_path
        self._include = (
            pathspec.PathSpec.from_lines("gitwildmatch", include_globs) if include_globs else None
        )
        self._exclude = (
            pathspec.PathSpec.from_lines("gitwildmatch", exclude_globs) if exclude_globs else None
        )

    def matches_globs(self, path: PathLike) -> bool:
        """Apply the include whitelist and exclude globs to one path."""
        root = find_root(path, self.roots)
        if root is None:
            return True
        relative = relative_to_root(path, root)
        if self._include is not None and not self._include.match_file(relative):
            return False
        if self._exclude is not None and self._exclude.match_file(relative):
            return False
        return True

    async def filter(self, paths: Sequence[str]) -> List[str]:
        """Return the subset of paths that should be indexed, order preserved."""
        candidates = [path for path in paths if self.matches_globs(path)]
        if not candidates:
            return []

        by_root: Dict[str, List[str]] = {}
        for path in candidates:
            root = find_root(path, self.roots)
            if root is not None:
                by_root.setdefault(root, []).append(path)

        ignored: Set[str] = set()
        for root, root_paths in by_root.items():
            ignored |= await self._git_ignored(root, root_paths)

        return [path for path in candidates if path not in ignored]

    async def _git_ignored(self, root: str, paths: List[str]) -> Set[str]:
        """Ask git which of the paths are ignored. Fails open."""
        relative = {relative_to_root(path, root): path for path in paths}
        payload = "\0".join(relative).encode("utf-8") + b"\0"

        try:
            process = await asyncio.create_subprocess_exec(
                self.git_path,
                "check-ignore",
                "-z",
                "--stdin",
                cwd=root,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate(payload)
        except (OSError, ValueError) as e:
            logger.debug(f"git check-ignore unavailable in {root}: {e}")
            return set()

        # 0: some paths ignored, 1: none ignored, anything else: not a repo / error
        if process.returncode not in (0, 1):
            logger.debug(
                f"git check-ignore failed in {root} (exit {process.returncode}): "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
            return set()

        ignored: Set[str] = set()
        for entry in stdout.decode("utf-8", errors="replace").split("\0"):
            if entry and entry in relative:
                ignored.add(relative[entry])
        if ignored:
            logger.debug(f"git check-ignore dropped {len(ignored)} file(s) in {root}")
        return ignored
