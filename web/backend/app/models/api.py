"""Pydantic models for API request/response serialization.

These mirror the reviewguard dataclasses and use the camelCase field
names the site's front end sends and expects.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reviewguard.moderation.models import StoredReview, SubmissionResult


class ReviewSubmissionRequest(BaseModel):
    """Body of a review submission.

    Field ranges are checked by the pipeline's own validation so that the
    caller gets the same messages everywhere.
    """

    model_config = ConfigDict(populate_by_name=True)

    rating: Optional[int] = None
    body: str = ""
    captcha_token: str = Field("", alias="captchaToken")


class SubmissionResultResponse(BaseModel):
    """Mirrors reviewguard.moderation.models.SubmissionResult."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    review_id: Optional[str] = Field(None, alias="reviewId")
    error: Optional[str] = None
    flagged: Optional[bool] = None
    admin_notes: Optional[str] = Field(None, alias="adminNotes")

    @classmethod
    def from_result(cls, result: SubmissionResult) -> SubmissionResultResponse:
        return cls.model_validate(result.to_dict())


class StoredReviewResponse(BaseModel):
    """Mirrors reviewguard.moderation.models.StoredReview."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    broker_id: str = Field(..., alias="brokerId")
    author_id: str = Field(..., alias="authorId")
    rating: int
    body: str
    flagged: bool = False
    admin_notes: Optional[str] = Field(None, alias="adminNotes")
    published_at: Optional[str] = Field(None, alias="publishedAt")
    created_at: str = Field("", alias="createdAt")

    @classmethod
    def from_review(cls, review: StoredReview) -> StoredReviewResponse:
        return cls(
            id=review.id,
            broker_id=review.broker_id,
            author_id=review.author_id,
            rating=review.rating,
            body=review.body,
            flagged=review.flagged,
            admin_notes=review.admin_notes,
            published_at=review.published_at,
            created_at=review.created_at,
        )


class PublishRequest(BaseModel):
    admin_notes: Optional[str] = Field(None, alias="adminNotes")

    model_config = ConfigDict(populate_by_name=True)
