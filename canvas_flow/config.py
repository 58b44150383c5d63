"""Configuration helpers for the Canvas Flow backend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Mapping
from urllib.parse import urlparse

from dotenv import load_dotenv

DEFAULT_DIFY_API_URL = "https://api.dify.ai/v1"
DEFAULT_USER_ID = "ai-lean-canvas-user"
DEMO_API_KEY = "demo"

MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 300_000

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3001",
]

load_dotenv(override=False)


@dataclass(frozen=True)
class DifySettings:
    """Settings container for the Dify workflow provider.

    Demo mode is active whenever no usable API key is configured; the API
    client then serves canned data instead of calling the provider.
    """

    api_key: str | None = None
    api_url: str = DEFAULT_DIFY_API_URL
    timeout_ms: int = 60_000
    demo_min_delay_ms: int = 1_000
    demo_max_delay_ms: int = 2_000
    demo_stream_interval_ms: int = 1_000
    user_id: str = DEFAULT_USER_ID

    @property
    def is_demo_mode(self) -> bool:
        """True when requests must be served by the mock generator."""

        key = (self.api_key or "").strip()
        return not key or key == DEMO_API_KEY

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def validate(self) -> List[str]:
        """Return human-readable configuration problems (empty when valid)."""

        errors: List[str] = []
        if not self.api_url:
            errors.append("DIFY_API_URL is required")
        else:
            parsed = urlparse(self.api_url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                errors.append("DIFY_API_URL must be a valid http(s) URL")
        if not MIN_TIMEOUT_MS <= self.timeout_ms <= MAX_TIMEOUT_MS:
            errors.append(
                f"API_TIMEOUT must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS} milliseconds"
            )
        return errors


@dataclass(frozen=True)
class StripeSettings:
    """Settings for the donation checkout."""

    secret_key: str | None = None
    currency: str = "jpy"
    product_name: str = "Lean Canvas Generator donation"
    product_description: str = "Thank you for supporting the Lean Canvas Generator."
    success_path: str = "/?donation=success"
    cancel_path: str = "/?donation=cancel"


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    """Parse an integer variable, falling back to *default* on bad input."""

    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def load_dify_settings(environ: Mapping[str, str]) -> DifySettings:
    """Build Dify settings from an environment mapping."""

    api_url = environ.get("DIFY_API_URL") or environ.get("NEXT_PUBLIC_DIFY_API_URL") or DEFAULT_DIFY_API_URL
    min_delay = max(0, _env_int(environ, "DEMO_MODE_MIN_DELAY", 1_000))
    max_delay = max(min_delay, _env_int(environ, "DEMO_MODE_MAX_DELAY", 2_000))
    return DifySettings(
        api_key=environ.get("DIFY_API_KEY") or None,
        api_url=api_url.rstrip("/"),
        timeout_ms=_env_int(environ, "API_TIMEOUT", 60_000),
        demo_min_delay_ms=min_delay,
        demo_max_delay_ms=max_delay,
        demo_stream_interval_ms=max(0, _env_int(environ, "DEMO_STREAM_INTERVAL", 1_000)),
        user_id=environ.get("DIFY_USER_ID") or DEFAULT_USER_ID,
    )


@lru_cache(maxsize=1)
def get_dify_settings() -> DifySettings:
    """Read environment variables and return cached Dify settings."""

    return load_dify_settings(os.environ)


@lru_cache(maxsize=1)
def get_stripe_settings() -> StripeSettings:
    """Read environment variables and return cached Stripe settings."""

    environ = os.environ
    return StripeSettings(
        secret_key=environ.get("STRIPE_SECRET_KEY") or None,
        currency=environ.get("STRIPE_CURRENCY", "jpy").lower(),
    )


def get_allowed_origins() -> List[str]:
    """Return allowed CORS origins, optionally sourced from an env override."""

    raw = os.getenv("CANVAS_FLOW_ALLOWED_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return DEFAULT_ALLOWED_ORIGINS
