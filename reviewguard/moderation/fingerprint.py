"""Word-level text fingerprints for cheap near-duplicate detection.

This is not a true SimHash.  Each whitespace-separated, lower-cased word is
hashed with a 31-multiplier polynomial rolling hash truncated to 32 bits,
and the word hashes are folded into one 32-bit accumulator.  The
accumulator is rotated one bit left before every fold so that the same
words in a different order produce a different fingerprint; a plain XOR
fold is commutative and would not.

Two fingerprints are compared by Hamming distance over the 32-bit space.
At this width false positives and false negatives are expected, so a
match is a moderation signal, not proof of duplication.
"""

from __future__ import annotations

FINGERPRINT_BITS = 32
NEAR_DUPLICATE_THRESHOLD = 0.8

_MASK = (1 << FINGERPRINT_BITS) - 1
_SIGN_BIT = 1 << (FINGERPRINT_BITS - 1)


def _word_hash(word: str) -> int:
    h = 0
    for ch in word:
        h = (h * 31 + ord(ch)) & _MASK
    return h


def _rotl(value: int, bits: int = 1) -> int:
    return ((value << bits) | (value >> (FINGERPRINT_BITS - bits))) & _MASK


def fingerprint(text: str) -> int:
    """Return the 32-bit fingerprint of *text*.

    Empty or whitespace-only text fingerprints to ``0``.
    """
    acc = 0
    for word in text.lower().split():
        acc = _rotl(acc) ^ _word_hash(word)
    # Read the accumulator as a signed 32-bit value and drop the sign.
    if acc & _SIGN_BIT:
        acc -= 1 << FINGERPRINT_BITS
    return abs(acc)


def similarity(h1: int, h2: int) -> float:
    """Fraction of matching bits between two fingerprints, in ``[0, 1]``."""
    diff = bin((h1 ^ h2) & _MASK).count("1")
    return 1.0 - diff / FINGERPRINT_BITS


def is_near_duplicate(score: float, threshold: float = NEAR_DUPLICATE_THRESHOLD) -> bool:
    """Return True when *score* meets the near-duplicate threshold (inclusive)."""
    return score >= threshold
