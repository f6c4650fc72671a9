"""Review submission moderation.

Provides the decision pipeline that accepts, cleans, holds, or rejects a
user-submitted broker review, together with the building blocks it
sequences: captcha verification, rate limiting, near-duplicate detection,
and profanity / PII classification.
"""
