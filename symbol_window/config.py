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

"""Indexer settings.

Settings can be built directly or loaded from a YAML file:

```yaml
enabled: true
batch_size: 15
batch_delay_ms: 100
include_files: "src/**, lib/**"
exclude_files:
  - "**/*.min.js"
  - "dist/**"
```
"""

import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Upper bound on files handed to the symbol provider per batch
MAX_BATCH_SIZE = 200

DEFAULT_STORAGE_DIR_NAME = ".symbol_window"
DATABASE_FILENAME = "symbols.db"


class IndexerSettings(BaseModel):
    """Configuration consumed by the indexing engine."""

    enabled: bool = Field(default=True, description="Enable the symbol database")
    batch_size: int = Field(
        default=15,
        description=f"Files per indexing batch (effective value clamped to 1..{MAX_BATCH_SIZE})",
    )
    batch_delay_ms: int = Field(
        default=100, ge=0, description="Pause between batches, in milliseconds"
    )
    include_files: List[str] = Field(
        default_factory=list, description="Glob whitelist; empty means every file"
    )
    exclude_files: List[str] = Field(
        default_factory=list, description="Globs always removed from indexing"
    )
    mtime_tolerance_ms: int = Field(
        default=1000, ge=0, description="mtime drift tolerated before a file is re-indexed"
    )
    max_index_failures: int = Field(
        default=3,
        ge=1,
        description="Consecutive failures at one mtime before sync stops re-queuing a file",
    )
    storage_dir: Optional[str] = Field(
        default=None,
        description=f"Directory holding {DATABASE_FILENAME} (default: <root>/{DEFAULT_STORAGE_DIR_NAME})",
    )
    rg_path: Optional[str] = Field(
        default=None, description="ripgrep executable (default: rg on PATH)"
    )

    @field_validator("include_files", "exclude_files", mode="before")
    @classmethod
    def _split_globs(cls, value: Union[str, List[str], None]) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [pattern.strip() for pattern in value if pattern and pattern.strip()]

    @property
    def effective_batch_size(self) -> int:
        if 0 < self.batch_size <= MAX_BATCH_SIZE:
            return self.batch_size
        return MAX_BATCH_SIZE

    @property
    def batch_delay(self) -> float:
        """Inter-batch delay in seconds."""
        return self.batch_delay_ms / 1000.0

    def database_path(self, root: Union[str, Path]) -> Path:
        storage = Path(self.storage_dir) if self.storage_dir else Path(root) / DEFAULT_STORAGE_DIR_NAME
        return storage / DATABASE_FILENAME


def load_settings(path: Optional[Union[str, Path]] = None, **overrides: Any) -> IndexerSettings:
    """Load settings from a YAML file.

    A missing or unreadable file falls back to defaults. Keyword overrides
    are applied on top of the file contents.
    """
    data: dict = {}
    if path is not None:
        config_path = Path(path)
        if config_path.is_file():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load settings from {config_path}: {e}")
                data = {}
            if not isinstance(data, dict):
                logger.error(f"Ignoring settings in {config_path}: expected a mapping")
                data = {}
        else:
            logger.debug(f"No settings file at {config_path}, using defaults")

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return IndexerSettings(**data)
    except ValidationError as e:
        logger.error(f"Invalid indexer settings, using defaults: {e}")
        return IndexerSettings()
