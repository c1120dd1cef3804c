import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from crypto_tracker.schemas import PriceSnapshot


def _epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    snapshot: PriceSnapshot
    fetched_at_ms: int


class PriceCache:
    """Time-expiring in-memory map of symbol -> last fetched snapshot.

    Entries are never evicted; an entry older than the ttl is simply ignored
    until the next put overwrites it.
    """

    def __init__(self, ttl_seconds: float = 60, clock: Callable[[], int] = _epoch_ms):
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str) -> Optional[PriceSnapshot]:
        with self._lock:
            entry = self._entries.get(symbol.lower())
        if entry is None:
            return None
        if self._clock() - entry.fetched_at_ms < self.ttl_ms:
            return entry.snapshot
        return None

    def put(self, symbol: str, snapshot: PriceSnapshot) -> None:
        entry = CacheEntry(snapshot=snapshot, fetched_at_ms=self._clock())
        with self._lock:
            self._entries[symbol.lower()] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)
