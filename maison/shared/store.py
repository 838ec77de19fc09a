"""Append-only, time-ordered storage of readings."""

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List

from .models import Reading, StoredReading

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(timestamp: datetime) -> datetime:
    """Naive timestamps are taken as UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class ReadingStore(ABC):
    """Base class for reading stores.

    Stores never update or delete. Retrieval order is timestamp descending,
    ties broken by most recent insertion first.
    """

    @abstractmethod
    def append(self, reading: Reading) -> StoredReading:
        """Persist one reading atomically.

        Assigns the current time if the reading carries no timestamp.

        Raises:
            PersistenceError: If the reading could not be stored.
        """
        pass

    @abstractmethod
    def _fetch_recent(self, count: int) -> List[StoredReading]:
        pass

    def recent(self, limit: int, cap: int) -> List[StoredReading]:
        """Return up to min(limit, cap) most recent readings, newest first."""
        count = min(limit, cap)
        if count <= 0:
            return []
        return self._fetch_recent(count)

    @abstractmethod
    def ping(self) -> bool:
        """Can the store currently be reached?"""
        pass

    def close(self):
        """Release any held resources."""
        pass


class MemoryReadingStore(ReadingStore):
    """In-process append-only log, for development runs and tests."""

    def __init__(self):
        self._records: List[StoredReading] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        logger.info("Initialized in-memory reading store")

    def append(self, reading: Reading) -> StoredReading:
        with self._lock:
            timestamp = as_utc(reading.timestamp) if reading.timestamp else utcnow()
            stored = StoredReading.from_reading(reading, id=next(self._ids), timestamp=timestamp)
            self._records.append(stored)
        return stored

    def _fetch_recent(self, count: int) -> List[StoredReading]:
        # list slicing gives a consistent prefix without holding the lock
        snapshot = self._records[:]
        ordered = sorted(snapshot, key=lambda r: (r.timestamp, r.id), reverse=True)
        return ordered[:count]

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._records)
