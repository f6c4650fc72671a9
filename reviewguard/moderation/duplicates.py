"""Near-duplicate detection against the author's own review history."""

from __future__ import annotations

import logging
from typing import Optional

from reviewguard.moderation.fingerprint import (
    NEAR_DUPLICATE_THRESHOLD,
    fingerprint,
    is_near_duplicate,
    similarity,
)
from reviewguard.moderation.models import DuplicateCheck
from reviewguard.moderation.policy import FailureMode, resolve_failure
from reviewguard.store.review_store import ReviewStore, ReviewStoreError

logger = logging.getLogger(__name__)


class DuplicateChecker:
    """Compares a new fingerprint with the author's prior reviews of a broker.

    Only the submitting author's history is consulted, so a match never
    reveals anything about other users.
    """

    def __init__(
        self,
        store: ReviewStore,
        threshold: float = NEAR_DUPLICATE_THRESHOLD,
        failure_mode: Optional[FailureMode] = None,
    ) -> None:
        self.store = store
        self.threshold = threshold
        self.failure_mode = failure_mode

    def check(self, broker_id: str, author_id: str, fp: int) -> DuplicateCheck:
        try:
            prior = self.store.select(broker_id, author_id)
        except ReviewStoreError as exc:
            return resolve_failure(
                "duplicate",
                exc,
                permissive=DuplicateCheck(is_duplicate=False),
                restrictive=DuplicateCheck(is_duplicate=True),
                mode=self.failure_mode,
            )

        for review in prior:
            score = similarity(fp, fingerprint(review.body))
            if is_near_duplicate(score, self.threshold):
                logger.info(
                    "submission by %s matches review %s (similarity %.2f)",
                    author_id, review.id, score,
                )
                return DuplicateCheck(
                    is_duplicate=True, similar_review_id=review.id, similarity=score
                )
        return DuplicateCheck(is_duplicate=False)
