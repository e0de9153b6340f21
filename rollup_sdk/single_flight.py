"""
Single-flight, memoize-on-success caching.

Used for values that never change over a process lifetime (chain addresses,
chain id). The first caller runs the computation; callers that arrive while
it is in flight wait for the same outcome instead of issuing their own
query. A failure is handed to every waiter and nothing is cached, so the
next call tries again.
"""
import threading
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar('T')


class _Flight:
    __slots__ = ("done", "value", "error")

    def __init__(self):
        self.done = threading.Event()
        self.value = None
        self.error: Optional[BaseException] = None


class SingleFlight(Generic[T]):
    """Lazily computed value shared by all callers."""

    def __init__(self, fn: Callable[[], T]):
        self._fn = fn
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._resolved = False
        self._flight: Optional[_Flight] = None

    def get(self) -> T:
        """
        Return the cached value, computing it on first use.

        Raises:
            Whatever the computation raised, for the leader and all waiters
        """
        with self._lock:
            if self._resolved:
                return self._value
            flight = self._flight
            leader = flight is None
            if leader:
                flight = self._flight = _Flight()

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        try:
            value = self._fn()
        except BaseException as e:
            flight.error = e
            with self._lock:
                self._flight = None
            flight.done.set()
            raise

        with self._lock:
            # first writer wins
            if not self._resolved:
                self._value = value
                self._resolved = True
            value = self._value
            self._flight = None
        flight.value = value
        flight.done.set()
        return value
