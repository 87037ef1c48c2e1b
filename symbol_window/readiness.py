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

"""Availability of the external symbol provider.

Each engine owns its own gate, so several engines (one per workspace) can
live in the same process.
"""

import logging

from symbol_window.events import EventEmitter

logger = logging.getLogger(__name__)


class ReadinessGate:
    """Boolean availability signal with change notifications."""

    def __init__(self, available: bool = False):
        self._available = available
        self.on_change: EventEmitter[bool] = EventEmitter("readiness")

    @property
    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        if self._available == available:
            return
        self._available = available
        logger.debug(f"Symbol provider {'available' if available else 'unavailable'}")
        self.on_change.emit(available)

    def pause(self) -> None:
        self.set_available(False)

    def resume(self) -> None:
        self.set_available(True)
