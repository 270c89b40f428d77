"""Constants module for the pinyin bot.

This module centralizes the size thresholds, timeouts and API defaults used
throughout the application. Every value here is only a default: the matching
``Settings`` field in ``config.py`` can override it from the environment.
"""

from dataclasses import dataclass
from typing import Final

MB: Final[int] = 1024 * 1024


@dataclass(frozen=True)
class ImageLimits:
    """Image selection and transform limits."""

    # Preferred ceiling for proactive variant selection
    SOFT_THRESHOLD_BYTES: Final[int] = 3 * MB
    # Platform-reported size above which the request is abandoned
    HARD_CEILING_BYTES: Final[int] = int(4.5 * MB)
    # Ceiling on the base64 text actually sent to the completion API
    MAX_PAYLOAD_BYTES: Final[int] = 5 * MB
    # Rough JPEG density used when Telegram omits file_size
    ESTIMATED_BYTES_PER_PIXEL: Final[float] = 0.3

    MAX_IMAGE_DIMENSION: Final[int] = 1200
    JPEG_QUALITY: Final[int] = 70
    TARGET_FORMAT: Final[str] = "JPEG"
    TARGET_MEDIA_TYPE: Final[str] = "image/jpeg"


@dataclass(frozen=True)
class CompletionDefaults:
    """Completion API defaults per provider."""

    ANTHROPIC_API_URL: Final[str] = "https://api.anthropic.com/v1/messages"
    ANTHROPIC_API_VERSION: Final[str] = "2023-06-01"
    ANTHROPIC_MODEL: Final[str] = "claude-3-5-sonnet-20240620"
    GEMINI_MODEL: Final[str] = "gemini-2.5-flash"
    MAX_TOKENS: Final[int] = 1024
    DIRECT_DEFAULT_MEDIA_TYPE: Final[str] = "image/png"


@dataclass(frozen=True)
class APITimeouts:
    """API request timeouts in seconds."""

    COMPLETION_HTTP: Final[float] = 50.0
    TELEGRAM_FILE_DOWNLOAD: Final[float] = 30.0
    # Telegram gives up on a webhook delivery after roughly a minute
    HANDLER_DEADLINE: Final[float] = 55.0


@dataclass(frozen=True)
class ErrorLogConstants:
    """Error logging constants."""

    MAX_TEXT_PREVIEW: Final[int] = 200
    MAX_ERROR_BODY_LENGTH: Final[int] = 200


@dataclass(frozen=True)
class TelegramConstants:
    """Telegram API constants."""

    MAX_MESSAGE_LENGTH: Final[int] = 4096
    SECRET_TOKEN_HEADER: Final[str] = "X-Telegram-Bot-Api-Secret-Token"


# Export all constant classes as singletons
IMAGE_LIMITS = ImageLimits()
COMPLETION_DEFAULTS = CompletionDefaults()
API_TIMEOUTS = APITimeouts()
ERROR_LOG_CONSTANTS = ErrorLogConstants()
TELEGRAM_CONSTANTS = TelegramConstants()

# Bot commands (without the leading slash) answered with the help text
HELP_COMMANDS: Final[frozenset[str]] = frozenset({"start", "help"})
