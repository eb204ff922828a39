"""Thread-safe token bucket rate limiter for NCBI requests."""

import threading
import time
from typing import Optional

from sra_retriever.errors import Cancelled


class RateLimiter:
    def __init__(self, requests_per_second: float):
        self.rate = requests_per_second
        self.tokens = requests_per_second
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Block until a token is available; raise Cancelled if the event fires first."""
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise Cancelled("Operation was cancelled")
            with self._lock:
                now = time.monotonic()
                elapsed = now - self._last_refill
                self.tokens = min(self.rate, self.tokens + elapsed * self.rate)
                self._last_refill = now
                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return
                wait = (1.0 - self.tokens) / self.rate
            time.sleep(min(wait, 0.05))
