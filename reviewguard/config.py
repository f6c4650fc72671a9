"""Runtime settings read from the process environment.

When ``TURNSTILE_SECRET_KEY`` is not set, captcha verification is disabled
and every token passes.  That is only permitted outside production:
``REVIEWGUARD_ENV=production`` without a secret is a configuration error.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
DEFAULT_CAPTCHA_TIMEOUT = 8.0


class ConfigurationError(Exception):
    """The environment describes an unsafe or unusable configuration."""


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    captcha_secret: str = ""
    captcha_verify_url: str = TURNSTILE_VERIFY_URL
    captcha_timeout: float = DEFAULT_CAPTCHA_TIMEOUT
    data_dir: Path = Path.home() / ".reviewguard"
    filters_path: Optional[Path] = None
    serialize_submissions: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def captcha_enabled(self) -> bool:
        return bool(self.captcha_secret)

    def validate(self) -> None:
        if self.is_production and not self.captcha_enabled:
            raise ConfigurationError(
                "TURNSTILE_SECRET_KEY must be set when REVIEWGUARD_ENV=production"
            )
        if self.captcha_timeout <= 0:
            raise ConfigurationError("REVIEWGUARD_CAPTCHA_TIMEOUT must be positive")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> Settings:
        """Build and validate settings from *env* (defaults to ``os.environ``)."""
        env = os.environ if env is None else env

        timeout_raw = env.get("REVIEWGUARD_CAPTCHA_TIMEOUT", "")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_CAPTCHA_TIMEOUT
        except ValueError:
            raise ConfigurationError(
                f"REVIEWGUARD_CAPTCHA_TIMEOUT is not a number: {timeout_raw!r}"
            ) from None

        data_dir = env.get("REVIEWGUARD_DATA_DIR", "")
        filters = env.get("REVIEWGUARD_FILTERS", "")
        settings = cls(
            environment=env.get("REVIEWGUARD_ENV", "development").strip().lower(),
            captcha_secret=env.get("TURNSTILE_SECRET_KEY", ""),
            captcha_verify_url=env.get("TURNSTILE_VERIFY_URL", "") or TURNSTILE_VERIFY_URL,
            captcha_timeout=timeout,
            data_dir=Path(data_dir).expanduser() if data_dir else Path.home() / ".reviewguard",
            filters_path=Path(filters).expanduser() if filters else None,
            serialize_submissions=_flag(env.get("REVIEWGUARD_SERIALIZE", "")),
        )
        settings.validate()
        return settings
