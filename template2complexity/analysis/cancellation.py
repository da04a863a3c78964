import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Cancellation(Protocol):
    def is_cancelled(self) -> bool: ...


class CancellationToken:
    """
    Cooperative cancellation signal, checked by the engine between phases.

    Cancel explicitly with ``cancel()`` from any thread, or build a token
    with a deadline via ``with_timeout``. The engine never waits on it.
    """

    def __init__(self, deadline: float | None = None):
        self._event = threading.Event()
        # time.monotonic() value after which the token counts as cancelled
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled()})"
