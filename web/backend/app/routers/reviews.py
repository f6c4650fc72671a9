"""Reviews router.

Provides the review submission endpoint used by the broker pages and the
held-review queue used by moderators.  Every submission outcome is written
to the audit trail.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from reviewguard.config import Settings
from reviewguard.moderation.models import Rejection, ReviewSubmission
from reviewguard.moderation.pipeline import ReviewPipeline
from reviewguard.security.audit_log import AuditLogger
from reviewguard.store.review_store import JsonReviewStore, ReviewStoreError
from web.backend.app.middleware.auth import get_current_user_id, require_admin
from web.backend.app.models.api import (
    PublishRequest,
    ReviewSubmissionRequest,
    StoredReviewResponse,
    SubmissionResultResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reviews"])

_REJECTION_STATUS = {
    Rejection.VALIDATION: 422,
    Rejection.CAPTCHA: 400,
    Rejection.RATE_LIMITED: 429,
    Rejection.DUPLICATE: 409,
    Rejection.PERSISTENCE: 503,
    Rejection.UNEXPECTED: 500,
}

# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_store: Optional[JsonReviewStore] = None
_pipeline: Optional[ReviewPipeline] = None
_audit: Optional[AuditLogger] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_store() -> JsonReviewStore:
    global _store
    if _store is None:
        _store = JsonReviewStore(get_settings().data_dir)
    return _store


def get_pipeline() -> ReviewPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = ReviewPipeline.from_settings(get_settings(), store=get_store())
    return _pipeline


def get_audit() -> AuditLogger:
    global _audit
    if _audit is None:
        _audit = AuditLogger(get_settings().data_dir / "audit_logs")
    return _audit


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/brokers/{broker_id}/reviews",
    response_model=SubmissionResultResponse,
    response_model_exclude_none=True,
    summary="Submit a review of a broker",
)
async def submit_review(
    broker_id: str,
    payload: ReviewSubmissionRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    pipeline: ReviewPipeline = Depends(get_pipeline),
    audit: AuditLogger = Depends(get_audit),
):
    """Run a review through the moderation pipeline.

    A flagged review still succeeds with ``flagged: true``; it is stored
    but stays unpublished until a moderator releases it.
    """
    submission = ReviewSubmission(
        rating=payload.rating,
        body=payload.body,
        captcha_token=payload.captcha_token,
        remote_ip=request.client.host if request.client else None,
    )
    result = await pipeline.submit(broker_id, user_id, submission)
    try:
        audit.log_result(broker_id, user_id, result)
    except OSError:
        logger.exception("Could not audit review decision for broker %s by %s", broker_id, user_id)

    if not result.success:
        raise HTTPException(
            status_code=_REJECTION_STATUS.get(result.rejection, 400),
            detail=result.to_dict(),
        )
    return SubmissionResultResponse.from_result(result)


@router.get(
    "/reviews/held",
    response_model=list[StoredReviewResponse],
    summary="List reviews held for moderation (admin only)",
)
async def list_held_reviews(
    broker_id: Optional[str] = Query(None, description="Only reviews of this broker"),
    _admin: str = Depends(require_admin),
    store: JsonReviewStore = Depends(get_store),
):
    try:
        reviews = store.list_held(broker_id)
    except ReviewStoreError:
        raise HTTPException(status_code=503, detail="Review store unavailable.")
    return [StoredReviewResponse.from_review(r) for r in reviews]


@router.post(
    "/reviews/{review_id}/publish",
    response_model=StoredReviewResponse,
    summary="Publish a held review (admin only)",
)
async def publish_review(
    review_id: str,
    payload: Optional[PublishRequest] = None,
    _admin: str = Depends(require_admin),
    store: JsonReviewStore = Depends(get_store),
):
    """Release a review that moderation held back."""
    try:
        review = store.publish(review_id, admin_notes=payload.admin_notes if payload else None)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ReviewStoreError:
        raise HTTPException(status_code=503, detail="Review store unavailable.")
    return StoredReviewResponse.from_review(review)
