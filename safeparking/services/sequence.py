from __future__ import annotations

import itertools
import threading
from typing import Optional, TypeVar

T = TypeVar("T")


class SearchSequencer:
    """Drops responses of searches that were superseded by a newer one.

    A caller takes a token with ``begin()`` before starting a search and hands
    the finished result to ``accept()``; only the newest token's result survives.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()

    def begin(self) -> int:
        with self._lock:
            self._latest = next(self._counter)
            return self._latest

    def is_latest(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    def accept(self, token: int, result: T) -> Optional[T]:
        if self.is_latest(token):
            return result
        return None
