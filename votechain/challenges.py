# Single-process store for short-lived signing challenges.
# Move to a shared cache before running more than one worker.
import threading
import time


class ChallengeStore:
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._items = {}
        self._lock = threading.Lock()

    def set(self, key, value, ttl_seconds=300):
        with self._lock:
            self._items[key] = (value, self._clock() + ttl_seconds)

    def get(self, key):
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() > expires_at:
                del self._items[key]
                return None
            return value

    def delete(self, key):
        with self._lock:
            self._items.pop(key, None)

    def clear(self):
        with self._lock:
            self._items.clear()


challenges = ChallengeStore()
