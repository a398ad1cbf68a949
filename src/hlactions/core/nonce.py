# src/hlactions/core/nonce.py

import threading
import time
from typing import Callable, Optional


def get_timestamp_ms() -> int:
    return int(time.time() * 1000)


class NonceSource:
    """
    Wall-clock milliseconds, forced strictly increasing.
    Two calls in the same millisecond (or after a clock step back) get last + 1.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or get_timestamp_ms
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            nonce = max(self._clock(), self._last + 1)
            self._last = nonce
            return nonce

    @property
    def last(self) -> int:
        return self._last


# Shared by every Signer that is not given its own source
default_nonce_source = NonceSource()
