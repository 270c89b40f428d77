"""Inbound event model and classification for the pinyin bot.

Telegram posts one JSON update per webhook call. The body is parsed with
``telegram.Update.de_json`` and reduced to the small slice the bot needs. A
partial or unexpected payload turns into an ``EmptyEvent`` instead of an
exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from telegram import Message, MessageEntity, PhotoSize, Update

from config import logger
from constants import HELP_COMMANDS


@dataclass(frozen=True, slots=True)
class ImageVariant:
    """One resolution of a Telegram photo (a ``PhotoSize``)."""

    width: int
    height: int
    file_id: str
    file_size: int | None = None

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def from_photo_size(cls, photo: PhotoSize) -> ImageVariant:
        return cls(
            width=photo.width,
            height=photo.height,
            file_id=photo.file_id,
            file_size=photo.file_size,
        )


@dataclass(frozen=True, slots=True)
class PhotoEvent:
    chat_id: int
    # Ordered by increasing pixel area, never empty
    variants: tuple[ImageVariant, ...]


@dataclass(frozen=True, slots=True)
class TextEvent:
    chat_id: int
    text: str
    # Leading bot command, lowercased and without the slash
    command: str | None = None
    # Bot username after '@' in the command, if any
    addressee: str | None = None


@dataclass(frozen=True, slots=True)
class EmptyEvent:
    pass


InboundEvent = Union[PhotoEvent, TextEvent, EmptyEvent]


class EventKind(str, Enum):
    PHOTO = "photo"
    COMMAND = "command"
    FREE_TEXT = "free_text"
    IGNORABLE = "ignorable"


def _leading_command(message: Message) -> tuple[str | None, str | None]:
    """Read the bot command the way CommandHandler does: first entity, at offset 0."""
    if not message.text or not message.entities:
        return None, None
    entity = message.entities[0]
    if entity.type != MessageEntity.BOT_COMMAND or entity.offset != 0:
        return None, None
    name, _, addressee = message.parse_entity(entity)[1:].partition("@")
    return name.lower(), addressee or None


def parse_inbound_event(payload: Any) -> InboundEvent:
    """
    Build an InboundEvent from a Telegram webhook payload.

    Args:
        payload: The decoded JSON body of the webhook request

    Returns:
        PhotoEvent when the message carries a photo, TextEvent for any other
        message, EmptyEvent for updates without a message or that Telegram's
        schema rejects
    """
    if not isinstance(payload, dict):
        return EmptyEvent()

    try:
        update = Update.de_json(payload, None)
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        logger.warning(f"Could not parse Telegram update: {e}")
        return EmptyEvent()

    message = update.message if update else None
    if message is None or message.chat is None:
        return EmptyEvent()

    chat_id = message.chat.id
    if message.photo:
        # sorted() is stable, so equal areas keep Telegram's order
        variants = sorted(
            (ImageVariant.from_photo_size(p) for p in message.photo),
            key=lambda v: v.area,
        )
        return PhotoEvent(chat_id=chat_id, variants=tuple(variants))

    command, addressee = _leading_command(message)
    return TextEvent(
        chat_id=chat_id,
        text=message.text or "",
        command=command,
        addressee=addressee,
    )


def classify_event(event: InboundEvent, bot_username: str | None = None) -> EventKind:
    """
    Classify an event. Pure function, no side effects.

    A command addressed to another bot (``/help@OtherBot``) is free text. When
    ``bot_username`` is unknown only unaddressed commands count.
    """
    if isinstance(event, PhotoEvent):
        return EventKind.PHOTO
    if isinstance(event, TextEvent):
        if event.command in HELP_COMMANDS and _is_addressed_to(event.addressee, bot_username):
            return EventKind.COMMAND
        return EventKind.FREE_TEXT
    return EventKind.IGNORABLE


def _is_addressed_to(addressee: str | None, bot_username: str | None) -> bool:
    if addressee is None:
        return True
    return bot_username is not None and addressee.lower() == bot_username.lower()
