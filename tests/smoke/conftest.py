"""Smoke tests call the real completion API and need credentials."""

from __future__ import annotations

import pytest

from config import Settings


@pytest.fixture()
def live_settings() -> Settings:
    settings = Settings.from_env()
    if not settings.completion_api_key:
        pytest.skip("No completion API key configured")
    return settings
