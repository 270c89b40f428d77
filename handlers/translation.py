"""Translation request handler for the pinyin bot."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from telegram import Bot
from telegram.constants import ChatAction, ParseMode

from config import logger, Settings
from constants import TELEGRAM_CONSTANTS
from errors import HandlerTimeout, PinyinBotError, user_message_for
import strings as S
from utils import safe_html, truncate_text

from .common import log_error_with_context
from .completion import CompletionClient
from .events import (
    EventKind,
    ImageVariant,
    PhotoEvent,
    TextEvent,
    classify_event,
    parse_inbound_event,
)
from .images import SelectedImage, prepare_image, select_variant


class Stage(str, Enum):
    CLASSIFIED = "classified"
    SELECTING = "selecting"
    FETCHING = "fetching"
    TRANSLATING = "translating"
    REPLYING = "replying"


@dataclass(frozen=True, slots=True)
class TranslationReply:
    chat_id: int
    text: str
    parse_mode: str | None = ParseMode.HTML


def format_translation_reply(chat_id: int, translation: str) -> TranslationReply:
    """Wrap a successful translation in the result header, escaped for HTML."""
    body_limit = TELEGRAM_CONSTANTS.MAX_MESSAGE_LENGTH - len(S.LABEL_PINYIN_RESULT)
    text = S.LABEL_PINYIN_RESULT + safe_html(translation.strip(), max_length=body_limit)
    return TranslationReply(chat_id=chat_id, text=text, parse_mode=ParseMode.HTML)


def format_error_reply(chat_id: int, error: BaseException) -> TranslationReply:
    """Plain-text apology for a failed request."""
    return TranslationReply(chat_id=chat_id, text=user_message_for(error), parse_mode=None)


def format_command_reply(event: TextEvent, kind: EventKind) -> TranslationReply:
    if kind is EventKind.COMMAND:
        return TranslationReply(chat_id=event.chat_id, text=S.HELP_TEXT, parse_mode=ParseMode.HTML)
    return TranslationReply(chat_id=event.chat_id, text=S.SEND_PHOTO_PROMPT, parse_mode=None)


class TranslationHandler:
    """
    Handle one Telegram update end to end.

    Photo updates go through variant selection, download, re-encoding and
    the completion call; text updates are answered directly. Every update
    that carries a chat gets exactly one reply, and ``handle`` never raises,
    so the webhook can always acknowledge Telegram with a 200.
    """

    def __init__(
        self,
        settings: Settings,
        bot: Bot,
        completion_client: CompletionClient,
    ) -> None:
        self.settings = settings
        self.bot = bot
        self.completion_client = completion_client

    async def handle(self, payload: Any) -> TranslationReply | None:
        """Process one webhook payload and return the reply that was sent (if any)."""
        event = parse_inbound_event(payload)
        kind = classify_event(event, bot_username=self._bot_username())

        if kind is EventKind.IGNORABLE:
            logger.debug("Ignoring update without a chat message")
            return None

        if isinstance(event, PhotoEvent):
            reply = await self._handle_photo(event)
        else:
            reply = format_command_reply(event, kind)

        await self._send_reply(reply)
        return reply

    def _bot_username(self) -> str | None:
        """Username from getMe; unknown until the bot is initialized."""
        try:
            return self.bot.username
        except RuntimeError:
            return None

    async def _handle_photo(self, event: PhotoEvent) -> TranslationReply:
        stage = Stage.CLASSIFIED
        await self._send_typing(event.chat_id)

        try:
            async with asyncio.timeout(self.settings.handler_deadline_seconds):
                stage = Stage.SELECTING
                variant = select_variant(
                    event.variants,
                    soft_threshold_bytes=self.settings.soft_threshold_bytes,
                    bytes_per_pixel=self.settings.bytes_per_pixel,
                )
                logger.info(
                    f"Using photo resolution {event.variants.index(variant) + 1} "
                    f"of {len(event.variants)} ({variant.width}x{variant.height})"
                )

                stage = Stage.FETCHING
                image = await self._prepare(variant)

                stage = Stage.TRANSLATING
                translation = await self.completion_client.complete(
                    image.data, image.media_type
                )
        except TimeoutError:
            error = HandlerTimeout(
                f"Gave up after {self.settings.handler_deadline_seconds}s while {stage.value}"
            )
            self._log_failure(error, stage, event.chat_id)
            return format_error_reply(event.chat_id, error)
        except Exception as e:
            self._log_failure(e, stage, event.chat_id)
            return format_error_reply(event.chat_id, e)

        return format_translation_reply(event.chat_id, translation)

    async def _prepare(self, variant: ImageVariant) -> SelectedImage:
        return await prepare_image(
            self.bot,
            variant,
            hard_ceiling_bytes=self.settings.hard_ceiling_bytes,
            max_payload_bytes=self.settings.max_payload_bytes,
            transform_enabled=self.settings.transform_enabled,
            max_dimension=self.settings.max_dimension,
            quality=self.settings.jpeg_quality,
        )

    async def _send_typing(self, chat_id: int) -> None:
        """Fire-and-forget typing indicator."""
        try:
            await self.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        except Exception as e:
            logger.debug(f"Typing indicator failed for chat {chat_id}: {e}")

    async def _send_reply(self, reply: TranslationReply) -> None:
        """Single send attempt; failures are logged, never raised."""
        try:
            await self.bot.send_message(
                chat_id=reply.chat_id,
                text=truncate_text(reply.text, TELEGRAM_CONSTANTS.MAX_MESSAGE_LENGTH),
                parse_mode=reply.parse_mode,
            )
        except Exception as e:
            log_error_with_context(
                e,
                context_info={"operation": "send_reply", "stage": Stage.REPLYING.value},
                chat_id=reply.chat_id,
                text_preview=reply.text,
            )

    def _log_failure(self, error: BaseException, stage: Stage, chat_id: int) -> None:
        context_info = {"operation": "photo_translation", "stage": stage.value}
        if not isinstance(error, PinyinBotError):
            context_info["classified"] = False
        log_error_with_context(error, context_info=context_info, chat_id=chat_id)
