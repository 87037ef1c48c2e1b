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

"""Reconciliation of the store with the files currently on disk."""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from symbol_window.codebase.symbol_store import FileEntry

logger = logging.getLogger(__name__)

DEFAULT_MTIME_TOLERANCE_MS = 1000


@dataclass
class SyncPlan:
    """Work needed to bring the store in line with the workspace."""

    to_index: List[str] = field(default_factory=list)
    to_delete: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_index and not self.to_delete


def stat_mtime_ms(path: str) -> Optional[int]:
    """Modification time in integer milliseconds, or None if stat fails."""
    try:
        return int(os.stat(path).st_mtime * 1000)
    except OSError:
        return None


def compute_sync_plan(
    workspace_files: Iterable[str],
    stored_files: Dict[str, FileEntry],
    stat_mtime: Callable[[str], Optional[int]] = stat_mtime_ms,
    tolerance_ms: int = DEFAULT_MTIME_TOLERANCE_MS,
    skip: Optional[Callable[[str, int], bool]] = None,
) -> SyncPlan:
    """Diff discovered files against stored ones.

    Args:
        workspace_files: Canonical paths found on disk
        stored_files: Store contents keyed by path
        stat_mtime: Returns a file's mtime in ms (None when stat fails)
        tolerance_ms: mtime drift ignored for files already stored
        skip: Optional predicate (path, mtime) for files that must not be
            re-queued, e.g. ones that keep failing at the same mtime

    Returns:
        SyncPlan with new/modified files to index and stale paths to delete
    """
    plan = SyncPlan()
    seen = set()

    for path in workspace_files:
        if path in seen:
            continue
        seen.add(path)

        stored = stored_files.get(path)
        if stored is None:
            if skip is not None:
                mtime = stat_mtime(path)
                if mtime is not None and skip(path, mtime):
                    continue
            plan.to_index.append(path)
            continue

        mtime = stat_mtime(path)
        if mtime is None:
            logger.debug(f"Cannot stat {path}, skipping")
            continue

        if abs(mtime - stored.mtime) > tolerance_ms:
            if skip is not None and skip(path, mtime):
                continue
            plan.to_index.append(path)
        else:
            plan.unchanged.append(path)

    plan.to_delete = [path for path in stored_files if path not in seen]
    return plan
