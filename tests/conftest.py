"""Shared fixtures for the pinyin bot test-suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path
# ---------------------------------------------------------------------------

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from config import Settings  # noqa: E402


@pytest.fixture()
def settings() -> Settings:
    """Settings with fake credentials and a short deadline."""
    return Settings(
        telegram_bot_token="123456:TEST-TOKEN",
        completion_api_key="test-api-key",
        completion_api_url="https://completion.test/v1/messages",
        handler_deadline_seconds=5.0,
    )


@pytest.fixture()
def settings_without_key(settings: Settings) -> Settings:
    from dataclasses import replace

    return replace(settings, completion_api_key=None)
