"""Tests for the end-to-end translation handler."""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from unittest.mock import AsyncMock, PropertyMock

import pytest
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest, NetworkError

import strings as S
from constants import TELEGRAM_CONSTANTS
from errors import ConfigurationError, RateLimited
from handlers.translation import TranslationHandler, format_translation_reply
from tests.helpers import (
    make_bot,
    make_completion_client,
    make_photo_payload,
    make_text_payload,
    megabytes,
)

CHAT_ID = 12345


def _handler(settings, bot=None, completion_client=None) -> TranslationHandler:
    return TranslationHandler(
        settings,
        bot or make_bot(),
        completion_client or make_completion_client(),
    )


def _sent(bot) -> dict:
    bot.send_message.assert_awaited_once()
    return bot.send_message.await_args.kwargs


async def test_photo_is_translated_and_answered_once(settings):
    bot = make_bot()
    completion = make_completion_client("你好 (nǐ hǎo)")
    handler = _handler(settings, bot, completion)

    reply = await handler.handle(make_photo_payload(chat_id=CHAT_ID))

    sent = _sent(bot)
    assert sent["chat_id"] == CHAT_ID
    assert sent["parse_mode"] == ParseMode.HTML
    assert sent["text"] == S.LABEL_PINYIN_RESULT + "你好 (nǐ hǎo)"
    assert reply.text == sent["text"]

    bot.send_chat_action.assert_awaited_once_with(chat_id=CHAT_ID, action=ChatAction.TYPING)
    # Highest resolution fits under the soft threshold
    bot.get_file.assert_awaited_once_with("photo-3")

    image, media_type = completion.complete.await_args.args
    assert media_type == "image/jpeg"
    assert image[:2] == b"\xff\xd8"


async def test_translation_text_is_html_escaped(settings):
    bot = make_bot()
    handler = _handler(settings, bot, make_completion_client("<b>一</b> & 二"))

    await handler.handle(make_photo_payload())

    assert _sent(bot)["text"].endswith("&lt;b&gt;一&lt;/b&gt; &amp; 二")


@pytest.mark.parametrize("text", ["/start", "/HELP", "/start@PinyinBot", "/help me"])
async def test_help_commands_get_help_text(settings, text):
    bot = make_bot()
    completion = make_completion_client()

    await _handler(settings, bot, completion).handle(make_text_payload(text))

    sent = _sent(bot)
    assert sent["text"] == S.HELP_TEXT
    assert sent["parse_mode"] == ParseMode.HTML
    completion.complete.assert_not_awaited()
    bot.get_file.assert_not_awaited()


@pytest.mark.parametrize("text", ["hello", "你好", "", "/help@SomeOtherBot"])
async def test_other_text_gets_photo_prompt(settings, text):
    bot = make_bot()

    await _handler(settings, bot).handle(make_text_payload(text))

    sent = _sent(bot)
    assert sent["text"] == S.SEND_PHOTO_PROMPT
    assert sent["parse_mode"] is None


@pytest.mark.parametrize("payload", [{}, {"update_id": 7}, {"edited_message": {"chat": {"id": 1}}}])
async def test_ignorable_updates_cause_no_calls(settings, payload):
    bot = make_bot()
    completion = make_completion_client()

    assert await _handler(settings, bot, completion).handle(payload) is None

    bot.send_message.assert_not_awaited()
    bot.send_chat_action.assert_not_awaited()
    completion.complete.assert_not_awaited()


async def test_oversized_file_skips_completion(settings):
    bot = make_bot(file_size=megabytes(4.6))
    completion = make_completion_client()

    await _handler(settings, bot, completion).handle(make_photo_payload())

    sent = _sent(bot)
    assert sent["text"] == S.IMAGE_TOO_LARGE
    assert sent["parse_mode"] is None
    completion.complete.assert_not_awaited()
    bot.get_file.return_value.download_as_bytearray.assert_not_awaited()


@pytest.mark.parametrize(
    "error, expected_text",
    [
        (RateLimited("slow down", status=429), S.RATE_LIMITED),
        (ConfigurationError("no key"), S.CONFIGURATION_ERROR),
        (RuntimeError("boom"), S.GENERIC_ERROR),
    ],
)
async def test_completion_failures_get_one_apology(settings, error, expected_text):
    bot = make_bot()
    completion = make_completion_client()
    completion.complete.side_effect = error

    reply = await _handler(settings, bot, completion).handle(make_photo_payload())

    assert _sent(bot)["text"] == expected_text
    assert reply.parse_mode is None


async def test_get_file_failure_gets_generic_apology(settings):
    bot = make_bot()
    bot.get_file.side_effect = BadRequest("Wrong file_id specified")
    completion = make_completion_client()

    await _handler(settings, bot, completion).handle(make_photo_payload())

    assert _sent(bot)["text"] == S.GENERIC_ERROR
    completion.complete.assert_not_awaited()


async def test_slow_completion_hits_deadline(settings):
    async def _slow(image, media_type):
        await asyncio.sleep(5)
        return "never"

    bot = make_bot()
    completion = make_completion_client()
    completion.complete.side_effect = _slow
    handler = _handler(replace(settings, handler_deadline_seconds=0.05), bot, completion)

    await handler.handle(make_photo_payload())

    assert _sent(bot)["text"] == S.TIMED_OUT


async def test_send_failure_does_not_raise(settings):
    bot = make_bot()
    bot.send_message.side_effect = NetworkError("connection reset")

    reply = await _handler(settings, bot).handle(make_photo_payload())

    assert reply is not None
    bot.send_message.assert_awaited_once()


async def test_typing_indicator_failure_is_ignored(settings):
    bot = make_bot()
    bot.send_chat_action = AsyncMock(side_effect=NetworkError("down"))

    await _handler(settings, bot).handle(make_photo_payload())

    assert _sent(bot)["text"].startswith(S.LABEL_PINYIN_RESULT)


async def test_long_translation_fits_one_message(settings):
    bot = make_bot()
    handler = _handler(settings, bot, make_completion_client("你 (nǐ)\n" * 2000))

    await handler.handle(make_photo_payload())

    text = _sent(bot)["text"]
    assert len(text) <= TELEGRAM_CONSTANTS.MAX_MESSAGE_LENGTH
    assert text.startswith(S.LABEL_PINYIN_RESULT)
    assert text.endswith("...")


def test_format_translation_reply_strips_whitespace():
    reply = format_translation_reply(1, "\n  一 (yī)  \n")
    assert reply.text == S.LABEL_PINYIN_RESULT + "一 (yī)"
    assert reply.parse_mode == ParseMode.HTML


async def test_addressed_command_ignored_before_bot_is_initialized(settings):
    bot = make_bot()
    type(bot).username = PropertyMock(side_effect=RuntimeError("not initialized"))

    await _handler(settings, bot).handle(make_text_payload("/help@PinyinBot"))

    assert _sent(bot)["text"] == S.SEND_PHOTO_PROMPT


async def test_slow_image_transform_hits_deadline(settings, monkeypatch):
    def _slow_transform(data, max_dimension, quality):
        time.sleep(0.5)
        return data

    monkeypatch.setattr("handlers.images.transform_image", _slow_transform)
    bot = make_bot()
    completion = make_completion_client()
    handler = _handler(replace(settings, handler_deadline_seconds=0.05), bot, completion)

    started = time.monotonic()
    await handler.handle(make_photo_payload())
    elapsed = time.monotonic() - started

    assert _sent(bot)["text"] == S.TIMED_OUT
    assert elapsed < 0.4
    completion.complete.assert_not_awaited()
