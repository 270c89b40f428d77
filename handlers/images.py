"""Photo variant selection, download and re-encoding."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError
from telegram import Bot
from telegram.error import TelegramError

from config import logger
from constants import IMAGE_LIMITS, API_TIMEOUTS
from errors import DownloadError, FileResolutionError, ImageTooLarge
from utils import base64_length, format_megabytes

from .events import ImageVariant


@dataclass(frozen=True, slots=True)
class SelectedImage:
    """The chosen variant and the bytes that will actually be submitted."""

    variant: ImageVariant
    data: bytes
    media_type: str = IMAGE_LIMITS.TARGET_MEDIA_TYPE


def estimate_variant_size(
    variant: ImageVariant,
    bytes_per_pixel: float = IMAGE_LIMITS.ESTIMATED_BYTES_PER_PIXEL,
) -> int:
    """Reported file size when Telegram provides one, else a pixel-count estimate."""
    if variant.file_size:
        return variant.file_size
    return int(variant.area * bytes_per_pixel)


def select_variant(
    variants: Sequence[ImageVariant],
    soft_threshold_bytes: int = IMAGE_LIMITS.SOFT_THRESHOLD_BYTES,
    bytes_per_pixel: float = IMAGE_LIMITS.ESTIMATED_BYTES_PER_PIXEL,
) -> ImageVariant:
    """
    Pick one photo variant, preferring the highest resolution that fits.

    Scans from the largest variant down and returns the first one whose
    estimated size is below the soft threshold. When none qualifies, the
    median entry is returned rather than the smallest one, to keep the text
    legible; the hard ceiling check after getFile decides whether it is
    usable at all.

    Args:
        variants: Photo sizes ordered by increasing pixel area
        soft_threshold_bytes: Preferred maximum estimated size
        bytes_per_pixel: Density used when a variant has no file_size

    Returns:
        One element of ``variants``
    """
    if not variants:
        raise ValueError("select_variant() needs at least one variant")

    for variant in reversed(variants):
        if estimate_variant_size(variant, bytes_per_pixel) < soft_threshold_bytes:
            return variant

    fallback = variants[len(variants) // 2]
    logger.info(
        f"No variant under {format_megabytes(soft_threshold_bytes)}, "
        f"falling back to {fallback.width}x{fallback.height}"
    )
    return fallback


def check_hard_ceiling(file_size: int | None, hard_ceiling_bytes: int) -> None:
    """Raise ImageTooLarge when a known file size exceeds the hard ceiling."""
    if file_size is not None and file_size > hard_ceiling_bytes:
        raise ImageTooLarge(
            f"Image is {format_megabytes(file_size)}, "
            f"limit is {format_megabytes(hard_ceiling_bytes)}"
        )


def check_payload_size(data: bytes, max_payload_bytes: int) -> None:
    """Raise ImageTooLarge when the base64 payload would exceed the API ceiling."""
    encoded = base64_length(len(data))
    if encoded > max_payload_bytes:
        raise ImageTooLarge(
            f"Encoded payload is {format_megabytes(encoded)}, "
            f"limit is {format_megabytes(max_payload_bytes)}"
        )


async def fetch_image(
    bot: Bot,
    variant: ImageVariant,
    hard_ceiling_bytes: int = IMAGE_LIMITS.HARD_CEILING_BYTES,
) -> bytes:
    """
    Resolve a variant through getFile and download its bytes.

    Single attempt, no retry. The size reported by getFile is checked
    against the hard ceiling before downloading; if Telegram does not report
    one, the downloaded byte count is checked instead.

    Raises:
        FileResolutionError: getFile failed or returned no file path
        ImageTooLarge: the file exceeds the hard ceiling
        DownloadError: the transfer failed or returned no data
    """
    try:
        tg_file = await bot.get_file(variant.file_id)
    except TelegramError as e:
        raise FileResolutionError(f"Failed to get file from Telegram: {e}") from e

    if not tg_file or not tg_file.file_path:
        raise FileResolutionError("Telegram returned no file path")

    logger.info(f"File size: {format_megabytes(tg_file.file_size)}")
    check_hard_ceiling(tg_file.file_size, hard_ceiling_bytes)

    try:
        data = await tg_file.download_as_bytearray(
            read_timeout=API_TIMEOUTS.TELEGRAM_FILE_DOWNLOAD,
        )
    except TelegramError as e:
        raise DownloadError(f"Failed to download image from Telegram: {e}") from e

    if not data:
        raise DownloadError("Downloaded image is empty")

    if tg_file.file_size is None:
        check_hard_ceiling(len(data), hard_ceiling_bytes)

    return bytes(data)


def transform_image(
    data: bytes,
    max_dimension: int = IMAGE_LIMITS.MAX_IMAGE_DIMENSION,
    quality: int = IMAGE_LIMITS.JPEG_QUALITY,
) -> bytes:
    """
    Downscale an image so neither side exceeds ``max_dimension`` and re-encode it as JPEG.

    Aspect ratio is preserved and images are never upscaled. EXIF
    orientation is applied first so the model sees the photo upright.

    Raises:
        DownloadError: the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = img.convert("RGB")
            original_size = img.size
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            out = io.BytesIO()
            img.save(out, format=IMAGE_LIMITS.TARGET_FORMAT, quality=quality, optimize=True)
    except (UnidentifiedImageError, OSError) as e:
        raise DownloadError(f"Downloaded file is not a readable image: {e}") from e

    result = out.getvalue()
    logger.debug(
        f"Transformed image {original_size[0]}x{original_size[1]} -> "
        f"{img.size[0]}x{img.size[1]}, {len(data)} -> {len(result)} bytes"
    )
    return result


async def prepare_image(
    bot: Bot,
    variant: ImageVariant,
    *,
    hard_ceiling_bytes: int,
    max_payload_bytes: int,
    transform_enabled: bool = True,
    max_dimension: int = IMAGE_LIMITS.MAX_IMAGE_DIMENSION,
    quality: int = IMAGE_LIMITS.JPEG_QUALITY,
) -> SelectedImage:
    """Fetch a selected variant, optionally re-encode it, and validate the payload size."""
    data = await fetch_image(bot, variant, hard_ceiling_bytes)
    if transform_enabled:
        # CPU-bound, runs off the event loop
        data = await asyncio.to_thread(
            transform_image, data, max_dimension=max_dimension, quality=quality
        )

    logger.info(f"Base64 size: {format_megabytes(base64_length(len(data)))}")
    check_payload_size(data, max_payload_bytes)

    # Telegram re-encodes every photo as JPEG, so the media type is fixed either way
    return SelectedImage(variant=variant, data=data, media_type=IMAGE_LIMITS.TARGET_MEDIA_TYPE)
