from __future__ import annotations

import os

import pytest

# Tests always run against the demo transport with no artificial latency.
os.environ["DIFY_API_KEY"] = ""
os.environ["DEMO_MODE_MIN_DELAY"] = "0"
os.environ["DEMO_MODE_MAX_DELAY"] = "0"
os.environ["DEMO_STREAM_INTERVAL"] = "0"
os.environ.pop("STRIPE_SECRET_KEY", None)

from canvas_flow.config import get_dify_settings, get_stripe_settings  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure cached settings do not leak between tests."""

    get_dify_settings.cache_clear()
    get_stripe_settings.cache_clear()
