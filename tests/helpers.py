"""Builders for Telegram payloads, bot mocks and test images.

The bot mock mirrors the slice of ``telegram.Bot`` the handlers use:
``get_file`` (returning a ``File``-like object with ``download_as_bytearray``),
``send_chat_action`` and ``send_message``.
"""

from __future__ import annotations

import io
from unittest.mock import AsyncMock, MagicMock

from PIL import Image

from constants import MB

BOT_USERNAME = "PinyinBot"

# Telegram-like photo sizes: (width, height, file_size), smallest first
DEFAULT_PHOTO_SIZES: tuple[tuple[int, int, int | None], ...] = (
    (90, 67, 1_200),
    (320, 240, 14_000),
    (800, 600, 70_000),
    (1280, 960, 160_000),
)


def make_image_bytes(
    width: int = 640,
    height: int = 480,
    image_format: str = "JPEG",
    mode: str = "RGB",
) -> bytes:
    """Render a solid-colour image and return its encoded bytes."""
    color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
    img = Image.new(mode, (width, height), color[: len(mode)])
    buf = io.BytesIO()
    img.save(buf, format=image_format)
    return buf.getvalue()


def _message_base(chat_id: int) -> dict:
    return {
        "message_id": 1,
        "date": 1_700_000_000,
        "chat": {"id": chat_id, "type": "private"},
    }


def make_photo_payload(
    chat_id: int = 12345,
    sizes: tuple[tuple[int, int, int | None], ...] = DEFAULT_PHOTO_SIZES,
) -> dict:
    """Build a webhook body for a photo message."""
    photo = []
    for index, (width, height, file_size) in enumerate(sizes):
        entry = {
            "file_id": f"photo-{index}",
            "file_unique_id": f"unique-{index}",
            "width": width,
            "height": height,
        }
        if file_size is not None:
            entry["file_size"] = file_size
        photo.append(entry)
    return {"update_id": 1, "message": {**_message_base(chat_id), "photo": photo}}


def make_text_payload(text: str, chat_id: int = 12345) -> dict:
    """Build a webhook body for a text message.

    Like Telegram, a leading /word is marked with a bot_command entity.
    """
    message = {**_message_base(chat_id), "text": text}
    if text.startswith("/"):
        message["entities"] = [
            {"type": "bot_command", "offset": 0, "length": len(text.split()[0])}
        ]
    return {"update_id": 1, "message": message}


def make_bot(
    image_bytes: bytes | None = None,
    file_size: int | None = 160_000,
    file_path: str | None = "photos/file_1.jpg",
) -> MagicMock:
    """Create a bot mock whose get_file() resolves to a downloadable file."""
    bot = MagicMock()
    bot.username = BOT_USERNAME
    bot.send_message = AsyncMock()
    bot.send_chat_action = AsyncMock()

    tg_file = MagicMock()
    tg_file.file_path = file_path
    tg_file.file_size = file_size
    tg_file.download_as_bytearray = AsyncMock(
        return_value=bytearray(image_bytes if image_bytes is not None else make_image_bytes())
    )
    bot.get_file = AsyncMock(return_value=tg_file)
    return bot


def make_completion_client(text: str = "你好 (nǐ hǎo)") -> MagicMock:
    """Create a completion client mock returning ``text``."""
    client = MagicMock()
    client.complete = AsyncMock(return_value=text)
    return client


def megabytes(value: float) -> int:
    return int(value * MB)
