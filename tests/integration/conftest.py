"""Fixtures for driving the FastAPI app in-process."""

from __future__ import annotations

import httpx
import pytest

from tests.helpers import make_bot, make_completion_client
from webhook import create_app


@pytest.fixture()
def bot():
    return make_bot()


@pytest.fixture()
def completion_client():
    return make_completion_client()


@pytest.fixture()
def make_client(settings, bot, completion_client):
    """Factory for an ASGI client; pass settings to override the default ones.

    The bot and completion client are injected, so the lifespan never
    creates a real Telegram bot.
    """

    def _make(app_settings=None) -> httpx.AsyncClient:
        app = create_app(app_settings or settings, bot=bot, completion_client=completion_client)
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    return _make
