"""Server-side verification of Cloudflare Turnstile captcha tokens.

Verification fails closed: any transport, status, or decoding error is
treated as a failed challenge.  Without a shared secret the verifier runs
in *disabled* mode and accepts every token; ``Settings.validate`` keeps
that mode out of production.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from reviewguard.config import DEFAULT_CAPTCHA_TIMEOUT, TURNSTILE_VERIFY_URL, Settings
from reviewguard.moderation.policy import resolve_failure

logger = logging.getLogger(__name__)


class CaptchaVerifier:
    """Checks a client-supplied challenge token with the captcha provider."""

    def __init__(
        self,
        secret: str = "",
        endpoint: str = TURNSTILE_VERIFY_URL,
        timeout: float = DEFAULT_CAPTCHA_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.secret = secret
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> CaptchaVerifier:
        return cls(
            secret=settings.captcha_secret,
            endpoint=settings.captcha_verify_url,
            timeout=settings.captcha_timeout,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """Return True if the provider accepts *token*."""
        if not self.enabled:
            logger.warning("Captcha secret not configured, skipping verification")
            return True

        form = {"secret": self.secret, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            if self._client is not None:
                resp = await self._client.post(self.endpoint, data=form, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.endpoint, data=form)
            resp.raise_for_status()
            result = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            return resolve_failure("captcha", exc, permissive=True, restrictive=False)

        if not isinstance(result, dict):
            return resolve_failure(
                "captcha",
                ValueError(f"unexpected verification payload: {result!r}"),
                permissive=True,
                restrictive=False,
            )
        if not result.get("success"):
            logger.info("Captcha rejected: %s", result.get("error-codes", []))
        return result.get("success") is True
