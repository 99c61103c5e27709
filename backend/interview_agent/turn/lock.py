from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable

logger = logging.getLogger("turn.lock")


class TurnLock:
    """
    Single-owner, non-blocking turn lock with a deadline.

    The critical section spans network calls of unbounded latency, so callers
    never wait on it: they either get the lock immediately or back off.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._guard = Lock()
        self._owner: str | None = None
        self._deadline: float | None = None

    @property
    def held(self) -> bool:
        with self._guard:
            return self._owner is not None

    @property
    def owner(self) -> str | None:
        with self._guard:
            return self._owner

    @property
    def deadline(self) -> float | None:
        with self._guard:
            return self._deadline

    def now(self) -> float:
        return self._clock()

    def try_acquire(self, turn_id: str, ttl: float) -> bool:
        if not turn_id:
            raise ValueError("turn_id is required")
        if ttl is None or float(ttl) <= 0:
            raise ValueError("ttl must be positive")

        with self._guard:
            if self._owner is not None:
                logger.debug("acquire rejected | turn=%s owner=%s", turn_id, self._owner)
                return False
            self._owner = turn_id
            self._deadline = self._clock() + float(ttl)
            return True

    def release(self, turn_id: str) -> bool:
        with self._guard:
            if self._owner is None or self._owner != turn_id:
                logger.debug("stale release ignored | turn=%s owner=%s", turn_id, self._owner)
                return False
            self._owner = None
            self._deadline = None
            return True

    def is_expired(self, now: float | None = None) -> bool:
        with self._guard:
            if self._owner is None or self._deadline is None:
                return False
            current = self._clock() if now is None else float(now)
            return current > self._deadline

    def force_release(self) -> str | None:
        """Clear the lock whoever owns it. Returns the evicted owner, if any."""
        with self._guard:
            evicted = self._owner
            self._owner = None
            self._deadline = None
        if evicted is not None:
            logger.info("lock force-released | evicted=%s", evicted)
        return evicted
