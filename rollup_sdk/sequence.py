"""
Per-account sequence number allocation.
"""
import bisect
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SequenceReservation:
    """A sequence number handed out by ``SequenceManager.reserve_next``."""
    account: str
    sequence_num: int
    generation: int = 0
    released: bool = False


class SequenceManager:
    """
    In-memory sequence counter for one account.

    The first reservation reads the account's transaction count from the
    chain; later ones are served from memory. Released numbers are tracked
    per reservation: releasing the newest one rewinds the counter, releasing
    an older one queues its number to be handed out again, lowest first.
    """

    def __init__(
        self,
        account: str,
        fetch_count: Callable[[str], int],
        logger_instance: Optional[logging.Logger] = None,
    ):
        """
        Args:
            account: Address the sequence numbers belong to
            fetch_count: Returns the account's current transaction count on the rollup
            logger_instance: Optional logger
        """
        self.account = account
        self._fetch_count = fetch_count
        self.logger = logger_instance or logger
        self._lock = threading.Lock()
        self._next: Optional[int] = None
        self._released: List[int] = []
        self._generation = 0

    def _ensure_initialized(self) -> int:
        if self._next is None:
            count = self._fetch_count(self.account)
            self.logger.debug(f"Initial sequence number for {self.account}: {count}")
            self._next = count
        return self._next

    def reserve_next(self) -> SequenceReservation:
        """Allocate the next sequence number for the account"""
        with self._lock:
            self._ensure_initialized()
            if self._released:
                sequence_num = self._released.pop(0)
            else:
                sequence_num = self._next
                self._next += 1
            generation = self._generation
        return SequenceReservation(account=self.account, sequence_num=sequence_num, generation=generation)

    def release(self, reservation: SequenceReservation) -> None:
        """
        Give back a reservation whose submission failed.

        Raises:
            ValueError: If the reservation belongs to another account
        """
        if reservation.account != self.account:
            raise ValueError(f"Reservation for {reservation.account} released on {self.account}")
        with self._lock:
            if reservation.released:
                self.logger.warning(f"Sequence number {reservation.sequence_num} released twice")
                return
            reservation.released = True
            if self._next is None or reservation.generation != self._generation:
                # counter was reset since the reservation was made
                return

            if reservation.sequence_num == self._next - 1:
                self._next -= 1
                while self._released and self._released[-1] == self._next - 1:
                    self._released.pop()
                    self._next -= 1
            elif reservation.sequence_num < self._next:
                bisect.insort(self._released, reservation.sequence_num)
            self.logger.debug(f"Released sequence number {reservation.sequence_num} for {self.account}")

    def peek(self) -> Optional[int]:
        """Number the next reservation would get, or None before the first reservation"""
        with self._lock:
            if self._next is None:
                return None
            return self._released[0] if self._released else self._next

    def generate(self) -> int:
        """Current next sequence number, querying the chain if needed, without reserving it"""
        with self._lock:
            self._ensure_initialized()
            return self._released[0] if self._released else self._next

    def increment(self) -> None:
        """
        Skip one sequence number.

        Raises:
            RuntimeError: If no sequence number has been generated yet
        """
        with self._lock:
            if self._next is None:
                raise RuntimeError("Sequence number must have already been generated")
            self._next += 1

    def reset(self) -> None:
        """Forget the cached counter; the next reservation re-queries the chain"""
        with self._lock:
            self._next = None
            self._released = []
            self._generation += 1
