"""
Single-writer counter source for one account.

Every loop trading from the same account submits through one allocator so
two loops never build groups on the same counter.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class CounterReservation:
    """Start counter handed to one submission"""

    def __init__(self, start: int):
        self.start = start
        self.used = 0
        self.stale = False

    def commit(self, operation_count: int):
        """Mark `operation_count` counters from `start` as consumed"""
        self.used = operation_count

    def invalidate(self):
        """Drop the locally tracked counter so the next reservation follows the node"""
        self.stale = True


class CounterAllocator:
    def __init__(self, account: str):
        self.account = account
        self._lock = asyncio.Lock()
        self._next_counter = 0

    @property
    def next_counter(self) -> int:
        return self._next_counter

    @asynccontextmanager
    async def reserve(self, observed_next: int) -> AsyncIterator[CounterReservation]:
        """
        Hold the account for one submission.

        `observed_next` is the next counter the node reports. The reservation
        starts at the later of that and the locally tracked counter and only
        advances the local counter when the caller commits.
        """
        async with self._lock:
            reservation = CounterReservation(max(observed_next, self._next_counter))
            yield reservation
            if reservation.stale:
                self._next_counter = 0
            elif reservation.used > 0:
                self._next_counter = reservation.start + reservation.used
                logger.debug(f"{self.account} counter advanced to {self._next_counter}")


_allocators: Dict[str, CounterAllocator] = {}


def get_counter_allocator(account: str) -> CounterAllocator:
    """Process-wide allocator for `account`"""
    if account not in _allocators:
        _allocators[account] = CounterAllocator(account)
    return _allocators[account]
