from __future__ import annotations

import logging
import math
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._store import CacheStore

logger = logging.getLogger(__name__)


def lock_key(scheme: str) -> str:
    return f"{scheme}_index_lock"


def _parse_stamp(raw: bytes) -> float | None:
    try:
        return float(raw.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        return None


class IndexLock:
    """Advisory cross-session mutex stored as a single cache key.

    The record holds the owner's ``time.time()`` stamp and expires from the
    store after ``time_limit`` seconds.  A waiter polls with exponential
    backoff and gives up waiting once the stamp is older than
    ``time_limit``, treating the owner as gone.

    There is **no compare-and-swap**: two sessions that both observe an
    absent or abandoned record will both proceed, and the later index
    write wins.
    """

    def __init__(
        self,
        store: CacheStore,
        scheme: str,
        time_limit: float,
        poll_interval: float = 0.001,
        max_backoff: float = 0.128,
    ) -> None:
        if time_limit <= 0:
            raise ValueError("time_limit must be > 0")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if max_backoff < poll_interval:
            raise ValueError("max_backoff must be >= poll_interval")
        self._store = store
        self._key = lock_key(scheme)
        self._time_limit = time_limit
        self._poll_interval = poll_interval
        self._max_backoff = max_backoff
        self._stamp: float | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def is_held(self) -> bool:
        return self._stamp is not None

    def _is_abandoned(self, raw: bytes) -> bool:
        stamp = _parse_stamp(raw)
        if stamp is None:
            logger.debug("Unreadable lock record %r under %s, ignoring it", raw, self._key)
            return True
        if stamp + self._time_limit < time.time():
            logger.debug(
                "Lock %s stamped %.3f is older than %ss, treating it as abandoned",
                self._key, stamp, self._time_limit,
            )
            return True
        return False

    def acquire(self) -> None:
        if self._stamp is not None:
            raise RuntimeError("acquire called while the lock is already held")
        delay = self._poll_interval
        waited = 0.0
        while True:
            raw = self._store.get(self._key)
            if raw is None or self._is_abandoned(raw):
                break
            time.sleep(delay)
            waited += delay
            delay = min(delay * 2, self._max_backoff)
        stamp = time.time()
        self._store.set(
            self._key, repr(stamp).encode("ascii"), math.ceil(self._time_limit)
        )
        self._stamp = stamp
        logger.debug("Acquired %s after waiting %.3fs", self._key, waited)

    def release(self) -> None:
        if self._stamp is None:
            raise RuntimeError("release called without matching acquire")
        self._store.delete(self._key)
        self._stamp = None
        logger.debug("Released %s", self._key)

    def __enter__(self) -> IndexLock:
        self.acquire()
        return self

    def __exit__(self, *args) -> None:
        self.release()
