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

"""Observable events with explicit subscription handles.

Usage:
    progress: EventEmitter[int] = EventEmitter("progress")
    subscription = progress.subscribe(lambda percent: print(percent))
    progress.emit(42)
    subscription.dispose()
"""

import logging
import threading
from typing import Any, Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by EventEmitter.subscribe; dispose() unsubscribes."""

    def __init__(self, emitter: "EventEmitter[Any]", callback: Callable[..., None]):
        self._emitter = emitter
        self._callback = callback
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._emitter._remove(self._callback)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()


class EventEmitter(Generic[T]):
    """Fan-out of a value to registered callbacks.

    Callback errors are logged and never reach the emitter.
    """

    def __init__(self, name: str = "event"):
        self.name = name
        self._callbacks: List[Callable[..., None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[..., None]) -> Subscription:
        with self._lock:
            self._callbacks.append(callback)
        return Subscription(self, callback)

    def emit(self, *args: Any) -> None:
        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in {self.name} listener: {e}")

    def clear(self) -> None:
        """Drop every listener (used on teardown)."""
        with self._lock:
            self._callbacks.clear()

    def _remove(self, callback: Callable[..., None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass
