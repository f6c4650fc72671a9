"""Auth dependencies -- identity asserted by the upstream web application.

Sessions and logins belong to the surrounding site.  Its gateway forwards
the authenticated user as ``X-User-Id`` and, for moderators,
``X-User-Role: admin``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Return the authenticated user id, or raise ``401 Unauthorized``."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You must be logged in to submit a review",
        )
    return x_user_id.strip()


async def require_admin(
    user_id: str = Depends(get_current_user_id),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> str:
    """Same as ``get_current_user_id`` but also requires the admin role."""
    if (x_user_role or "").lower() != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
    return user_id
