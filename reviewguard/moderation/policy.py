"""What each pipeline stage does when its own infrastructure fails.

Rate limiting and duplicate detection favour availability: a store outage
lets the submission through.  Captcha verification and persistence favour
safety: an error rejects the submission.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureMode(str, Enum):
    OPEN = "open"  # permit on error
    CLOSED = "closed"  # reject on error


FAILURE_POLICY: dict[str, FailureMode] = {
    "captcha": FailureMode.CLOSED,
    "rate_limit": FailureMode.OPEN,
    "duplicate": FailureMode.OPEN,
    "persistence": FailureMode.CLOSED,
}


def failure_mode_for(component: str) -> FailureMode:
    """Return the configured failure mode for *component*."""
    try:
        return FAILURE_POLICY[component]
    except KeyError:
        raise ValueError(f"No failure policy for component {component!r}") from None


def resolve_failure(
    component: str,
    exc: BaseException,
    permissive: T,
    restrictive: T,
    mode: Optional[FailureMode] = None,
) -> T:
    """Log *exc* and return the outcome the policy prescribes for *component*."""
    mode = mode or failure_mode_for(component)
    if mode is FailureMode.OPEN:
        logger.warning("%s check failed, allowing submission: %s", component, exc)
        return permissive
    logger.error("%s check failed, rejecting submission: %s", component, exc)
    return restrictive
