"""Review submission pipeline.

Sequences the moderation stages for a single submission::

    Received -> CaptchaChecked -> RateChecked -> DuplicateChecked
             -> Classified -> Decided -> Persisted | Rejected

Captcha, rate limit, and duplicate failures reject the submission before
anything is written.  Profanity or personal data never reject: the review
is stored with the offending text cleaned and held from publication until
a moderator releases it.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Callable, Optional

from reviewguard.config import Settings
from reviewguard.moderation.captcha import CaptchaVerifier
from reviewguard.moderation.duplicates import DuplicateChecker
from reviewguard.moderation.filters import FilterConfig, PIIClassifier, ProfanityClassifier
from reviewguard.moderation.models import (
    ClassifierVerdict,
    NewReview,
    Rejection,
    ReviewSubmission,
    SubmissionResult,
)
from reviewguard.moderation.rate_limiter import RateLimiter, _utcnow
from reviewguard.store.review_store import JsonReviewStore, ReviewStore, ReviewStoreError

logger = logging.getLogger(__name__)

MIN_BODY_LENGTH = 10
MAX_BODY_LENGTH = 1000

CAPTCHA_FAILED = "Captcha verification failed. Please try again."
DUPLICATE_REVIEW = "This review appears to be very similar to a previous review you submitted."
SUBMIT_FAILED = "Failed to submit review. Please try again."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."


class Stage(str, Enum):
    RECEIVED = "received"
    CAPTCHA_CHECKED = "captcha_checked"
    RATE_CHECKED = "rate_checked"
    DUPLICATE_CHECKED = "duplicate_checked"
    CLASSIFIED = "classified"
    DECIDED = "decided"
    PERSISTED = "persisted"
    REJECTED = "rejected"


def validate_review_data(
    rating: Optional[int], body: Optional[str], captcha_token: Optional[str]
) -> Optional[str]:
    """Return a user-facing error for malformed input, or None if it is valid."""
    if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
        return "Please provide a rating between 1 and 5 stars"
    if not body or len(body.strip()) < MIN_BODY_LENGTH:
        return f"Review must be at least {MIN_BODY_LENGTH} characters long"
    if len(body) > MAX_BODY_LENGTH:
        return f"Review must be less than {MAX_BODY_LENGTH} characters"
    if not captcha_token:
        return "Please complete the security verification"
    return None


def build_admin_notes(profanity: ClassifierVerdict, pii: ClassifierVerdict) -> Optional[str]:
    """Summarise why a review was held, e.g. ``Contains profanity; Contains PII: email``."""
    notes = []
    if profanity.flagged:
        notes.append("Contains profanity")
    if pii.flagged:
        notes.append(f"Contains PII: {', '.join(pii.categories)}")
    return "; ".join(notes) or None


class ReviewPipeline:
    """Decides the fate of one review submission at a time.

    With ``serialize=True`` the span from rate check to insert is guarded
    by a per-(broker, author) lock, closing the check-then-act race for
    concurrent submissions handled by the same process.  Store calls run in
    worker threads so they do not block the event loop.
    """

    def __init__(
        self,
        store: ReviewStore,
        captcha: CaptchaVerifier,
        rate_limiter: Optional[RateLimiter] = None,
        duplicates: Optional[DuplicateChecker] = None,
        profanity: Optional[ProfanityClassifier] = None,
        pii: Optional[PIIClassifier] = None,
        clock: Callable[[], datetime] = _utcnow,
        serialize: bool = False,
    ) -> None:
        self.store = store
        self.captcha = captcha
        self.rate_limiter = rate_limiter or RateLimiter(store, clock=clock)
        self.duplicates = duplicates or DuplicateChecker(store)
        self.profanity = profanity or ProfanityClassifier()
        self.pii = pii or PIIClassifier()
        self.clock = clock
        self.serialize = serialize
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, store: Optional[ReviewStore] = None
    ) -> ReviewPipeline:
        """Wire a pipeline from environment-derived *settings*."""
        filters = (
            FilterConfig.from_yaml(settings.filters_path)
            if settings.filters_path
            else FilterConfig()
        )
        return cls(
            store=store or JsonReviewStore(settings.data_dir),
            captcha=CaptchaVerifier.from_settings(settings),
            profanity=ProfanityClassifier(filters),
            pii=PIIClassifier(filters),
            serialize=settings.serialize_submissions,
        )

    # -- public API ----------------------------------------------------------

    async def submit(
        self, broker_id: str, user_id: str, submission: ReviewSubmission
    ) -> SubmissionResult:
        """Run *submission* through every stage and persist it if accepted."""
        error = validate_review_data(submission.rating, submission.body, submission.captcha_token)
        if error:
            return SubmissionResult.rejected(Rejection.VALIDATION, error)

        try:
            result = await self._run(broker_id, user_id, submission)
        except Exception:
            logger.exception("Review submission for broker %s by %s failed", broker_id, user_id)
            return SubmissionResult.rejected(Rejection.UNEXPECTED, UNEXPECTED_ERROR)

        logger.info(
            "Review for broker %s by %s: %s",
            broker_id,
            user_id,
            (Stage.PERSISTED if result.success else Stage.REJECTED).value,
        )
        return result

    # -- stages --------------------------------------------------------------

    @asynccontextmanager
    async def _serialized(self, broker_id: str, user_id: str) -> AsyncIterator[None]:
        if not self.serialize:
            yield
            return
        key = (broker_id, user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        async with lock:
            yield

    async def _run(
        self, broker_id: str, user_id: str, submission: ReviewSubmission
    ) -> SubmissionResult:
        stage = Stage.RECEIVED

        if not await self.captcha.verify(submission.captcha_token, submission.remote_ip):
            logger.debug("%s -> %s: captcha failed", stage.value, Stage.REJECTED.value)
            return SubmissionResult.rejected(Rejection.CAPTCHA, CAPTCHA_FAILED)
        stage = Stage.CAPTCHA_CHECKED

        async with self._serialized(broker_id, user_id):
            rate = await asyncio.to_thread(self.rate_limiter.check, broker_id, user_id)
            if not rate.within_limit:
                logger.debug("%s -> %s: %d recent reviews", stage.value, Stage.REJECTED.value, rate.count)
                return SubmissionResult.rejected(
                    Rejection.RATE_LIMITED,
                    f"You have reached the maximum of {self.rate_limiter.limit} reviews per "
                    f"broker in 24 hours. You have submitted {rate.count} reviews.",
                    count=rate.count,
                )
            stage = Stage.RATE_CHECKED

            dup = await asyncio.to_thread(
                self.duplicates.check, broker_id, user_id, submission.fingerprint
            )
            if dup.is_duplicate:
                logger.debug("%s -> %s: near-duplicate", stage.value, Stage.REJECTED.value)
                return SubmissionResult.rejected(Rejection.DUPLICATE, DUPLICATE_REVIEW)
            stage = Stage.DUPLICATE_CHECKED

            profanity = self.profanity.classify(submission.body)
            pii = self.pii.classify(profanity.cleaned_text)
            stage = Stage.CLASSIFIED

            flagged = profanity.flagged or pii.flagged
            admin_notes = build_admin_notes(profanity, pii) if flagged else None
            now = self.clock().isoformat()
            row = NewReview(
                broker_id=broker_id,
                author_id=user_id,
                rating=submission.rating,
                body=pii.cleaned_text if flagged else submission.body,
                flagged=flagged,
                admin_notes=admin_notes,
                published_at=None if flagged else now,
                created_at=now,
            )
            stage = Stage.DECIDED

            try:
                stored = await asyncio.to_thread(self.store.insert, row)
            except ReviewStoreError:
                logger.exception("%s -> %s: insert failed", stage.value, Stage.REJECTED.value)
                return SubmissionResult.rejected(Rejection.PERSISTENCE, SUBMIT_FAILED)

        return SubmissionResult(
            success=True,
            review_id=stored.id,
            flagged=flagged,
            admin_notes=admin_notes,
        )
