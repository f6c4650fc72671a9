"""Persistence for submitted reviews."""

from reviewguard.store.review_store import JsonReviewStore, ReviewStore, ReviewStoreError

__all__ = ["JsonReviewStore", "ReviewStore", "ReviewStoreError"]
