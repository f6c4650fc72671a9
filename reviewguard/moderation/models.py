"""Data models for the review moderation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from reviewguard.moderation.fingerprint import fingerprint

USER_REVIEW = "user"


@dataclass
class ReviewSubmission:
    """A review as posted by a user, before any moderation."""

    rating: int
    body: str
    captcha_token: str
    remote_ip: Optional[str] = None

    @property
    def fingerprint(self) -> int:
        return fingerprint(self.body)


@dataclass
class NewReview:
    """Row contents handed to the review store for insertion."""

    broker_id: str
    author_id: str
    rating: int
    body: str
    flagged: bool = False
    admin_notes: Optional[str] = None
    published_at: Optional[str] = None  # None = held for moderation
    created_at: str = ""
    kind: str = USER_REVIEW
    lang: str = "en"


@dataclass
class StoredReview:
    """A persisted review row."""

    id: str
    broker_id: str
    author_id: str
    rating: int
    body: str
    flagged: bool = False
    admin_notes: Optional[str] = None
    published_at: Optional[str] = None
    created_at: str = ""
    kind: str = USER_REVIEW
    lang: str = "en"

    @property
    def is_published(self) -> bool:
        return self.published_at is not None


@dataclass
class ClassifierVerdict:
    """Outcome of one content classifier."""

    flagged: bool
    categories: tuple[str, ...] = ()
    cleaned_text: str = ""


@dataclass
class RateCheck:
    """Recent-submission count for a (broker, author) pair."""

    within_limit: bool
    count: int = 0


@dataclass
class DuplicateCheck:
    """Result of comparing a submission against the author's history."""

    is_duplicate: bool
    similar_review_id: Optional[str] = None
    similarity: float = 0.0


class Rejection(str, Enum):
    """Why a submission did not reach the review store."""

    VALIDATION = "validation"
    CAPTCHA = "captcha"
    RATE_LIMITED = "rate_limited"
    DUPLICATE = "duplicate"
    PERSISTENCE = "persistence"
    UNEXPECTED = "unexpected"


@dataclass
class SubmissionResult:
    """What the pipeline reports back to the caller."""

    success: bool
    review_id: Optional[str] = None
    error: Optional[str] = None
    flagged: Optional[bool] = None
    admin_notes: Optional[str] = None
    rejection: Optional[Rejection] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def rejected(cls, rejection: Rejection, error: str, **extra: Any) -> SubmissionResult:
        return cls(success=False, error=error, rejection=rejection, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the caller-facing key names, omitting absent keys."""
        out: dict[str, Any] = {"success": self.success}
        if self.review_id is not None:
            out["reviewId"] = self.review_id
        if self.error is not None:
            out["error"] = self.error
        if self.flagged is not None:
            out["flagged"] = self.flagged
        if self.admin_notes:
            out["adminNotes"] = self.admin_notes
        return out
