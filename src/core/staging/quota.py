"""
Open-session quota.

An owner may hold a limited number of sessions that are pending or in
progress and not yet past expiry. Sessions without an owner are not
counted and never rejected.

The count and the later insert are not atomic; two simultaneous creates
can both pass the check. That's accepted: the quota is a soft guard
against piling up abandoned reviews, not a billing limit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import QuotaExceededError
from .models import utc_now
from .stores import SessionStore


logger = logging.getLogger(__name__)

DEFAULT_MAX_OPEN_SESSIONS = 3


@dataclass(frozen=True)
class QuotaStatus:
    current: int
    limit: int

    @property
    def can_create(self) -> bool:
        return self.current < self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current)


class QuotaGuard:

    def __init__(self, sessions: SessionStore, max_open: int = DEFAULT_MAX_OPEN_SESSIONS) -> None:
        if max_open < 1:
            raise ValueError("max_open must be positive")
        self._sessions = sessions
        self._max_open = max_open

    @property
    def max_open(self) -> int:
        return self._max_open

    def status(self, owner_id: Optional[str], now: Optional[datetime] = None) -> QuotaStatus:
        if not owner_id:
            return QuotaStatus(current=0, limit=self._max_open)
        current = self._sessions.count_open_sessions(owner_id, now or utc_now())
        return QuotaStatus(current=current, limit=self._max_open)

    def check(self, owner_id: Optional[str], now: Optional[datetime] = None) -> None:
        """Raise QuotaExceededError if the owner can't open another session."""
        quota = self.status(owner_id, now)
        if not quota.can_create:
            logger.info(
                "Session quota reached",
                extra={"owner_id": owner_id, "current": quota.current, "limit": quota.limit},
            )
            raise QuotaExceededError(current=quota.current, limit=quota.limit)
