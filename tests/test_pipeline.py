"""Tests for the review submission pipeline."""

import asyncio
import tempfile
import time
from datetime import datetime, timedelta, timezone

from reviewguard.moderation.captcha import CaptchaVerifier
from reviewguard.moderation.models import NewReview, Rejection, ReviewSubmission
from reviewguard.moderation.pipeline import ReviewPipeline, validate_review_data
from reviewguard.store.review_store import JsonReviewStore, ReviewStoreError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
CLEAN_BODY = "Fast execution and very low fees on index funds, good app overall."


class StubCaptcha:
    """Captcha verifier returning a fixed answer and counting calls."""

    def __init__(self, passes=True):
        self.passes = passes
        self.calls = 0

    async def verify(self, token, remote_ip=None):
        self.calls += 1
        return self.passes


class ReadFailureStore(JsonReviewStore):
    """Writes work, reads used by the pre-checks fail."""

    def count(self, broker_id, author_id, since):
        raise ReviewStoreError("replica down")

    def select(self, broker_id, author_id):
        raise ReviewStoreError("replica down")


class WriteFailureStore(JsonReviewStore):
    def insert(self, review):
        raise ReviewStoreError("disk full")


class ExplodingClassifier:
    def classify(self, text):
        raise RuntimeError("internal detail that must not leak")


def _pipeline(store, captcha=None, **kwargs):
    return ReviewPipeline(store, captcha or StubCaptcha(), clock=lambda: NOW, **kwargs)


def _submit(pipeline, body=CLEAN_BODY, rating=4, token="tok", broker="etoro", user="u1"):
    submission = ReviewSubmission(rating=rating, body=body, captcha_token=token)
    return asyncio.run(pipeline.submit(broker, user, submission))


def _seed(store, n, author="u1"):
    for i in range(n):
        created = (NOW - timedelta(hours=i + 1)).isoformat()
        store.insert(NewReview(
            broker_id="etoro",
            author_id=author,
            rating=3,
            body=f"Earlier review {i}: the charting tools lag on mobile {i * 7}",
            published_at=created,
            created_at=created,
        ))


# --- Validation ---


def test_validate_review_data():
    assert validate_review_data(4, CLEAN_BODY, "tok") is None
    assert "rating" in validate_review_data(0, CLEAN_BODY, "tok")
    assert "rating" in validate_review_data(6, CLEAN_BODY, "tok")
    assert "rating" in validate_review_data(None, CLEAN_BODY, "tok")
    assert "at least 10" in validate_review_data(3, "   too short   ", "tok")
    assert "less than 1000" in validate_review_data(3, "x" * 1001, "tok")
    assert validate_review_data(3, "x" * 1000, "tok") is None
    assert "security verification" in validate_review_data(3, CLEAN_BODY, "")


def test_invalid_input_skips_every_stage():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        captcha = StubCaptcha()
        result = _submit(_pipeline(store, captcha), rating=9)
        assert not result.success
        assert result.rejection is Rejection.VALIDATION
        assert captcha.calls == 0
        assert store.list_held() == []


# --- Scenarios ---


def test_happy_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store))

        assert result.success
        assert result.flagged is False
        assert result.admin_notes is None
        assert result.to_dict() == {"success": True, "reviewId": result.review_id, "flagged": False}

        stored = store.get(result.review_id)
        assert stored.body == CLEAN_BODY
        assert stored.rating == 4
        assert stored.published_at == NOW.isoformat()
        assert not stored.flagged


def test_over_limit():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        _seed(store, 3)
        result = _submit(_pipeline(store))

        assert not result.success
        assert result.rejection is Rejection.RATE_LIMITED
        assert "3" in result.error
        assert len(store.select("etoro", "u1")) == 3


def test_two_prior_reviews_accepted():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        _seed(store, 2)
        result = _submit(_pipeline(store))
        assert result.success
        assert len(store.select("etoro", "u1")) == 3


def test_profane_content_is_held():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store), body="Honestly this broker is a scam, avoid it.")

        assert result.success
        assert result.flagged is True
        assert result.admin_notes == "Contains profanity"

        stored = store.get(result.review_id)
        assert "scam" not in stored.body
        assert "****" in stored.body
        assert stored.published_at is None
        assert stored.admin_notes == "Contains profanity"


def test_pii_content_is_redacted():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store), body="Great support, contact me at jane@example.com for details.")

        assert result.success
        assert result.flagged is True
        assert result.admin_notes == "Contains PII: email"

        stored = store.get(result.review_id)
        assert "jane@example.com" not in stored.body
        assert "[REDACTED]" in stored.body
        assert stored.flagged


def test_profanity_cleaned_before_pii():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store), body="Total fraud, ask John about it at john@mail.com")

        assert result.admin_notes == "Contains profanity; Contains PII: email, names"
        assert store.get(result.review_id).body == "Total *****, ask [NAME] about it at [REDACTED]"


def test_email_with_banned_word_is_redacted():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store), body="Write to me at jane.thief@example.com about this")

        assert result.admin_notes == "Contains profanity; Contains PII: email"
        stored = store.get(result.review_id)
        assert "example.com" not in stored.body
        assert stored.body == "Write to me at [REDACTED] about this"


def test_captcha_failure_rejects():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store, StubCaptcha(passes=False)))

        assert not result.success
        assert result.rejection is Rejection.CAPTCHA
        assert result.error == "Captcha verification failed. Please try again."
        assert store.list_held() == []
        assert store.select("etoro", "u1") == []


def test_disabled_captcha_passes():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        assert _submit(_pipeline(store, CaptchaVerifier(secret=""))).success


def test_duplicate_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        pipeline = _pipeline(store)
        assert _submit(pipeline).success

        again = _submit(pipeline, body=CLEAN_BODY.upper())
        assert not again.success
        assert again.rejection is Rejection.DUPLICATE
        assert "similar to a previous review" in again.error
        assert len(store.select("etoro", "u1")) == 1


def test_same_text_from_another_user_is_not_duplicate():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        pipeline = _pipeline(store)
        assert _submit(pipeline, user="u1").success
        assert _submit(pipeline, user="u2").success


# --- Failure handling ---


def test_store_read_failures_fail_open():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ReadFailureStore(tmpdir)
        result = _submit(_pipeline(store))
        assert result.success
        assert store.get(result.review_id) is not None


def test_persistence_failure():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _submit(_pipeline(WriteFailureStore(tmpdir)))
        assert not result.success
        assert result.rejection is Rejection.PERSISTENCE
        assert result.error == "Failed to submit review. Please try again."


def test_unexpected_failure_does_not_leak():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        result = _submit(_pipeline(store, profanity=ExplodingClassifier()))
        assert not result.success
        assert result.rejection is Rejection.UNEXPECTED
        assert "internal detail" not in result.error
        assert store.select("etoro", "u1") == []


# --- Invariants ---


def test_flag_implies_hold():
    bodies = [
        CLEAN_BODY,
        "They are a pyramid operation, stay away from them.",
        "Call 555-123-4567 and ask for the manager please.",
        "Charting is decent and the research section is thorough.",
    ]
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReviewStore(tmpdir)
        pipeline = _pipeline(store)
        for i, body in enumerate(bodies):
            assert _submit(pipeline, body=body, user=f"user-{i}").success

        rows = [r for i in range(len(bodies)) for r in store.select("etoro", f"user-{i}")]
        assert len(rows) == 4
        assert sum(r.flagged for r in rows) == 2
        for r in rows:
            assert r.flagged == (r.published_at is None)


class SlowCountStore(JsonReviewStore):
    """Counting takes long enough for a concurrent submission to overlap it."""

    def count(self, broker_id, author_id, since):
        time.sleep(0.2)
        return super().count(broker_id, author_id, since)


def _submit_pair(pipeline):
    async def both():
        return await asyncio.gather(
            pipeline.submit("etoro", "u1", ReviewSubmission(4, CLEAN_BODY, "tok")),
            pipeline.submit("etoro", "u1", ReviewSubmission(5, "Solid research tools, slow support replies.", "tok")),
        )

    return asyncio.run(both())


def test_unserialized_concurrent_submissions_can_exceed_limit():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = SlowCountStore(tmpdir)
        _seed(store, 2)
        results = _submit_pair(_pipeline(store, serialize=False))

        assert [r.success for r in results] == [True, True]
        assert len(store.select("etoro", "u1")) == 4


def test_serialized_concurrent_submissions_respect_limit():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = SlowCountStore(tmpdir)
        _seed(store, 2)
        results = _submit_pair(_pipeline(store, serialize=True))

        assert sorted(r.success for r in results) == [False, True]
        rejected = next(r for r in results if not r.success)
        assert rejected.rejection is Rejection.RATE_LIMITED
        assert len(store.select("etoro", "u1")) == 3
