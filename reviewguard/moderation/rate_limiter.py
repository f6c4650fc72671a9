"""Per-author, per-broker submission limit over a sliding window."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from reviewguard.moderation.models import RateCheck
from reviewguard.moderation.policy import FailureMode, resolve_failure
from reviewguard.store.review_store import ReviewStore, ReviewStoreError

logger = logging.getLogger(__name__)

MAX_REVIEWS_PER_WINDOW = 3
WINDOW = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    """Counts an author's recent reviews of one broker.

    The window slides with the clock; it is recomputed from the store on
    every check and never cached.
    """

    def __init__(
        self,
        store: ReviewStore,
        limit: int = MAX_REVIEWS_PER_WINDOW,
        window: timedelta = WINDOW,
        clock: Callable[[], datetime] = _utcnow,
        failure_mode: Optional[FailureMode] = None,
    ) -> None:
        self.store = store
        self.limit = limit
        self.window = window
        self.clock = clock
        self.failure_mode = failure_mode

    def check(self, broker_id: str, author_id: str) -> RateCheck:
        since = self.clock() - self.window
        try:
            count = self.store.count(broker_id, author_id, since)
        except ReviewStoreError as exc:
            return resolve_failure(
                "rate_limit",
                exc,
                permissive=RateCheck(within_limit=True, count=0),
                restrictive=RateCheck(within_limit=False, count=0),
                mode=self.failure_mode,
            )
        logger.debug("author %s has %d review(s) of %s since %s", author_id, count, broker_id, since)
        return RateCheck(within_limit=count < self.limit, count=count)
