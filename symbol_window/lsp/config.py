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

"""Language servers used to extract document symbols.

Only servers for programming languages with meaningful symbol outlines are
listed; data formats (JSON, YAML, ...) are not indexed.
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class LSPServerConfig:
    """Configuration for a language server."""

    name: str  # Human-readable name
    language_id: str  # LSP language identifier
    file_extensions: List[str]  # Suffixes (or exact file names) this server handles
    command: List[str]
    args: List[str] = field(default_factory=list)
    initialization_options: Dict[str, Any] = field(default_factory=dict)
    install_command: Optional[str] = None

    @property
    def full_command(self) -> List[str]:
        return self.command + self.args

    def is_installed(self) -> bool:
        return shutil.which(self.command[0]) is not None

    def handles(self, file_path: str) -> bool:
        path = Path(file_path)
        return path.suffix.lower() in self.file_extensions or path.name in self.file_extensions


LANGUAGE_SERVERS: Dict[str, LSPServerConfig] = {
    "python": LSPServerConfig(
        name="Pyright",
        language_id="python",
        file_extensions=[".py", ".pyi"],
        command=["pyright-langserver", "--stdio"],
        install_command="pip install pyright",
    ),
    "typescript": LSPServerConfig(
        name="TypeScript Language Server",
        language_id="typescript",
        file_extensions=[".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"],
        command=["typescript-language-server", "--stdio"],
        install_command="npm install -g typescript-language-server typescript",
    ),
    "rust": LSPServerConfig(
        name="rust-analyzer",
        language_id="rust",
        file_extensions=[".rs"],
        command=["rust-analyzer"],
        install_command="rustup component add rust-analyzer",
    ),
    "go": LSPServerConfig(
        name="gopls",
        language_id="go",
        file_extensions=[".go"],
        command=["gopls"],
        install_command="go install golang.org/x/tools/gopls@latest",
    ),
    "java": LSPServerConfig(
        name="Eclipse JDT Language Server",
        language_id="java",
        file_extensions=[".java"],
        command=["jdtls"],
        install_command="brew install jdtls",
    ),
    "c": LSPServerConfig(
        name="clangd",
        language_id="cpp",
        file_extensions=[".c", ".h", ".cpp", ".hpp", ".cc", ".cxx"],
        command=["clangd"],
        install_command="brew install llvm",
    ),
    "lua": LSPServerConfig(
        name="lua-language-server",
        language_id="lua",
        file_extensions=[".lua"],
        command=["lua-language-server"],
        install_command="brew install lua-language-server",
    ),
    "bash": LSPServerConfig(
        name="Bash Language Server",
        language_id="shellscript",
        file_extensions=[".sh", ".bash"],
        command=["bash-language-server", "start"],
        install_command="npm install -g bash-language-server",
    ),
}


def get_server_for_file(
    file_path: str, servers: Optional[Mapping[str, LSPServerConfig]] = None
) -> Optional[str]:
    """Return the key of the language server handling a file.

    Args:
        file_path: Path to the file
        servers: Server table to search (default: LANGUAGE_SERVERS)

    Returns:
        Server key (e.g. "python") or None when no server handles the file
    """
    table = LANGUAGE_SERVERS if servers is None else servers
    for key, config in table.items():
        if config.handles(file_path):
            return key
    return None
