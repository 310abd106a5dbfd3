import threading
import time
from typing import Callable, Optional


class Deadline:
    """Cooperative cancellation token with an optional wall-clock budget.

    ``seconds=None`` means no time limit; ``cancel()`` can still be used to
    stop the work from another thread.
    """

    def __init__(self, seconds: Optional[float] = None, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds
        self._cancelled = threading.Event()

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def expired(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining(self) -> Optional[float]:
        if self._cancelled.is_set():
            return 0.0
        if self._expires_at is None:
            return None
        return max(self._expires_at - self._clock(), 0.0)

    def cap(self, timeout: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)
