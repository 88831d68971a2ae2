"""Per-user cooldown between trading runs."""

import logging
import math
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from signaltrader.cache.base import Clock
from signaltrader.db.store import DataStore

logger = logging.getLogger(__name__)


class CooldownStore(ABC):
    """Where the last accepted invocation time per user is kept."""

    @abstractmethod
    def get_last(self, user_id: str) -> Optional[datetime]:
        """Return the last accepted invocation time, or None."""
        pass

    @abstractmethod
    def set_last(self, user_id: str, invoked_at: datetime) -> None:
        """Record an accepted invocation."""
        pass


class SqliteCooldownStore(CooldownStore):
    """Cooldown timestamps persisted in the ``cooldowns`` table."""

    def __init__(self, data_store: DataStore):
        self._data_store = data_store

    def get_last(self, user_id: str) -> Optional[datetime]:
        return self._data_store.get_last_invocation(user_id)

    def set_last(self, user_id: str, invoked_at: datetime) -> None:
        self._data_store.set_last_invocation(user_id, invoked_at)


class InMemoryCooldownStore(CooldownStore):
    """Process-local cooldown timestamps."""

    def __init__(self):
        self._last: dict[str, datetime] = {}

    def get_last(self, user_id: str) -> Optional[datetime]:
        return self._last.get(user_id)

    def set_last(self, user_id: str, invoked_at: datetime) -> None:
        self._last[user_id] = invoked_at


class CooldownGate:
    """Admits at most one run per user per cooldown window."""

    def __init__(
        self,
        store: CooldownStore,
        cooldown: timedelta = timedelta(minutes=60),
        clock: Clock = datetime.now,
    ):
        self._store = store
        self._cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    def remaining(self, user_id: str, now: Optional[datetime] = None) -> timedelta:
        """Time left before the user may run again (zero if allowed)."""
        last = self._store.get_last(user_id)
        if last is None:
            return timedelta(0)
        left = last + self._cooldown - (now or self._clock())
        return max(left, timedelta(0))

    def try_acquire(self, user_id: str) -> int:
        """Record an invocation if the cooldown has elapsed.

        Args:
            user_id: Invoking user.

        Returns:
            0 when the invocation is accepted, otherwise the number of whole
            minutes (rounded up) the user must still wait.
        """
        with self._lock:
            now = self._clock()
            left = self.remaining(user_id, now)
            if left > timedelta(0):
                wait_minutes = math.ceil(left / timedelta(minutes=1))
                logger.info("User %s rate limited for %d minute(s)", user_id, wait_minutes)
                return wait_minutes
            self._store.set_last(user_id, now)
            return 0
