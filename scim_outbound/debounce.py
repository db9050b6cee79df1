"""Time-windowed suppression of duplicate dispatches.

The identity provider commonly emits the same change twice (a user event and
an admin event for one profile edit).  ``Debouncer.should_proceed`` lets the
first occurrence of a key through and swallows repeats inside the window.
"""

import threading
import time
from typing import Callable, Dict, Hashable

DEBOUNCE_WINDOW = 2.0  # seconds

# Expired keys are swept once the map grows past this many entries
MAX_ENTRIES = 10_000


class Debouncer:
    """Thread-safe check-and-set map of key -> last accepted timestamp.

    Args:
        window:      Suppression window in seconds.
        clock:       Monotonic clock; injectable for tests.
        max_entries: Size at which entries older than the window are evicted.
                     Only expired entries are ever evicted.
    """

    def __init__(
        self,
        window: float = DEBOUNCE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = MAX_ENTRIES,
    ):
        self.window = window
        self.clock = clock
        self.max_entries = max_entries
        self._seen: Dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def should_proceed(self, key: Hashable) -> bool:
        with self._lock:
            now = self.clock()
            last = self._seen.get(key)
            if last is not None and now - last < self.window:
                return False
            self._seen[key] = now
            if len(self._seen) > self.max_entries:
                self._evict_expired(now)
            return True

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, ts in self._seen.items() if now - ts >= self.window]
        for k in expired:
            del self._seen[k]

    def __len__(self):
        with self._lock:
            return len(self._seen)

    def __bool__(self):
        # An empty map is still a live debouncer
        return True


class NullDebouncer:
    """Lets everything through (replay tooling and tests)."""

    def should_proceed(self, key: Hashable) -> bool:
        return True
