"""One-shot latch for values that are set exactly once."""

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


class Latch(Generic[T]):
    """A state cell that transitions from unset to a value exactly once.

    The first call to set() stores the value and releases every waiter.
    Later calls are ignored and report False, so several competing
    producers collapse into one observable transition.

    Example:
        >>> latch = Latch()
        >>> latch.set("done")
        True
        >>> latch.set("again")
        False
        >>> latch.value
        'done'
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._value: Optional[T] = None

    def set(self, value: T) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._value = value
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the latch is set or timeout seconds pass.

        Returns:
            True if the latch is set, False on timeout
        """
        return self._event.wait(timeout)

    @property
    def value(self) -> Optional[T]:
        return self._value
