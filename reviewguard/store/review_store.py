"""File-based JSON storage for reviews.

Provides the record-store contract the moderation pipeline depends on,
backed by a single JSON file under ``~/.reviewguard/``.  Unlike a cache,
a review store that cannot be read is an error: callers decide whether to
fail open or closed, so every I/O or decoding problem is raised as
:class:`ReviewStoreError`.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from reviewguard.moderation.models import USER_REVIEW, NewReview, StoredReview


class ReviewStoreError(Exception):
    """The review store could not complete a read or write."""


class ReviewStore(Protocol):
    """Operations the moderation pipeline needs from a review store."""

    def insert(self, review: NewReview) -> StoredReview: ...

    def count(self, broker_id: str, author_id: str, since: datetime) -> int: ...

    def select(self, broker_id: str, author_id: str) -> list[StoredReview]: ...


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class JsonReviewStore:
    """Reviews stored as a JSON list in ``<base_dir>/reviews.json``."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base = Path(base_dir) if base_dir else Path.home() / ".reviewguard"
        self._base.mkdir(parents=True, exist_ok=True)
        self._path = self._base / "reviews.json"
        self._lock = threading.Lock()

    # -- persistence ---------------------------------------------------------

    def _load(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ReviewStoreError(f"Cannot read {self._path}: {exc}") from exc
        if not isinstance(data, list):
            raise ReviewStoreError(f"{self._path} does not contain a review list")
        return data

    def _save(self, rows: list[dict]) -> None:
        try:
            self._path.write_text(json.dumps(rows, indent=2), encoding="utf-8")
        except OSError as exc:
            raise ReviewStoreError(f"Cannot write {self._path}: {exc}") from exc

    @staticmethod
    def _from_dict(d: dict) -> StoredReview:
        return StoredReview(
            **{k: v for k, v in d.items() if k in StoredReview.__dataclass_fields__}
        )

    # -- contract ------------------------------------------------------------

    def insert(self, review: NewReview) -> StoredReview:
        """Append *review* and return it with its assigned id."""
        row = asdict(review)
        row["id"] = uuid.uuid4().hex
        if not row["created_at"]:
            row["created_at"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            rows = self._load()
            rows.append(row)
            self._save(rows)
        return self._from_dict(row)

    def count(self, broker_id: str, author_id: str, since: datetime) -> int:
        """Count the author's reviews of *broker_id* created at or after *since*."""
        try:
            return sum(
                1 for r in self.select(broker_id, author_id)
                if _parse_ts(r.created_at) >= since
            )
        except ValueError as exc:
            raise ReviewStoreError(f"Malformed created_at in {self._path}: {exc}") from exc

    def select(self, broker_id: str, author_id: str) -> list[StoredReview]:
        """Return every user review *author_id* has written about *broker_id*.

        Rows of any other ``kind`` (imported or editorial reviews) are
        skipped, so they never count toward rate limits or duplicates.
        """
        with self._lock:
            rows = self._load()
        return [
            self._from_dict(r) for r in rows
            if r.get("broker_id") == broker_id
            and r.get("author_id") == author_id
            and r.get("kind", USER_REVIEW) == USER_REVIEW
        ]

    # -- moderation queue ----------------------------------------------------

    def get(self, review_id: str) -> Optional[StoredReview]:
        with self._lock:
            rows = self._load()
        for r in rows:
            if r.get("id") == review_id:
                return self._from_dict(r)
        return None

    def list_held(self, broker_id: Optional[str] = None) -> list[StoredReview]:
        """Return unpublished reviews, oldest first."""
        with self._lock:
            rows = self._load()
        held = [
            self._from_dict(r) for r in rows
            if r.get("published_at") is None
            and (broker_id is None or r.get("broker_id") == broker_id)
        ]
        held.sort(key=lambda r: r.created_at)
        return held

    def publish(self, review_id: str, admin_notes: Optional[str] = None) -> StoredReview:
        """Release a held review after manual moderation."""
        with self._lock:
            rows = self._load()
            for r in rows:
                if r.get("id") != review_id:
                    continue
                if r.get("published_at") is not None:
                    raise ValueError(f"Review {review_id} is already published")
                r["published_at"] = datetime.now(timezone.utc).isoformat()
                r["flagged"] = False
                if admin_notes is not None:
                    r["admin_notes"] = admin_notes
                self._save(rows)
                return self._from_dict(r)
        raise ValueError(f"Review {review_id} not found")
