"""Thread-safe id sequence for temporary embedding ids."""

import threading

from ignite_store.errors import InvalidRequestError


class IdSequence:
    """Monotonically increasing counter shared by concurrent callers.

    Each call to ``next()`` returns a value no other caller has received.
    Inject one instance per model rather than relying on module state.
    """

    def __init__(self, start: int = 0) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def reserve(self, count: int) -> range:
        """Reserve ``count`` consecutive values in a single step."""
        if count < 0:
            raise InvalidRequestError(f"count must not be negative, got {count}")
        with self._lock:
            start = self._next
            self._next += count
            return range(start, start + count)

    @property
    def current(self) -> int:
        """Next value that will be handed out."""
        with self._lock:
            return self._next
