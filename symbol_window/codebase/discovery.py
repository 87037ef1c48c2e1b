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

"""Workspace file discovery backed by ripgrep.

``rg --files`` already honours .gitignore, .ignore and hidden-file rules and
is far faster than walking the tree in Python, so discovery delegates to it.
"""

import asyncio
import logging
import os
import shutil
from typing import Iterable, List, Optional, Protocol, Sequence

from symbol_window.codebase.paths import PathLike, canonicalize_path

logger = logging.getLogger(__name__)


class FileScanner(Protocol):
    """Lists candidate files below a root."""

    async def list_files(
        self, root: str, include_globs: Sequence[str], exclude_globs: Sequence[str]
    ) -> List[str]:
        ...


class RipgrepScanner:
    """FileScanner running ``rg --files`` in the root directory."""

    def __init__(self, rg_path: Optional[str] = None):
        self.rg_path = rg_path or shutil.which("rg") or "rg"

    def build_command(self, include_globs: Sequence[str], exclude_globs: Sequence[str]) -> List[str]:
        cmd = [self.rg_path, "--files"]
        for glob in include_globs:
            cmd.extend(["--glob", glob])
        for glob in exclude_globs:
            cmd.extend(["--glob", f"!{glob}"])
        return cmd

    async def list_files(
        self, root: str, include_globs: Sequence[str], exclude_globs: Sequence[str]
    ) -> List[str]:
        """Return absolute paths of the files ripgrep reports under root.

        Never raises: a missing binary or a failed run yields an empty list.
        """
        cmd = self.build_command(include_globs, exclude_globs)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except FileNotFoundError:
            logger.error(f"ripgrep not found ({self.rg_path}); no files discovered in {root}")
            return []
        except OSError as e:
            logger.error(f"Failed to run ripgrep in {root}: {e}")
            return []

        # Exit code 1 means no files matched
        if process.returncode == 1:
            return []
        if process.returncode != 0:
            logger.error(
                f"ripgrep exited with {process.returncode} in {root}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
            return []

        return [
            os.path.join(root, line)
            for line in stdout.decode("utf-8", errors="replace").splitlines()
            if line.strip()
        ]


class FileDiscovery:
    """Enumerates candidate files across all workspace roots."""

    def __init__(
        self,
        scanner: FileScanner,
        roots: Iterable[PathLike],
        include_globs: Optional[Sequence[str]] = None,
        exclude_globs: Optional[Sequence[str]] = None,
    ):
        self.scanner = scanner
        self.roots: List[str] = [canonicalize_path(root) for root in roots]
        self.include_globs: List[str] = list(include_globs or [])
        self.exclude_globs: List[str] = list(exclude_globs or [])

    async def discover(self) -> List[str]:
        """Return canonical, de-duplicated paths of all candidate files."""
        seen = set()
        files: List[str] = []
        for root in self.roots:
            try:
                found = await self.scanner.list_files(root, self.include_globs, self.exclude_globs)
            except Exception as e:
                logger.error(f"File discovery failed in {root}: {e}")
                continue

            for path in found:
                canonical = canonicalize_path(path)
                if canonical not in seen:
                    seen.add(canonical)
                    files.append(canonical)

        logger.debug(f"Discovered {len(files)} file(s) in {len(self.roots)} root(s)")
        return files
