"""Error types for the pinyin bot.

Every failure in the translation flow is raised as a ``PinyinBotError``
subclass tagged with an ``ErrorKind`` at the point where it happens. The
user-facing reply is looked up from the kind, never inferred from the
exception text.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

import strings as S


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    FILE_RESOLUTION = "file_resolution"
    DOWNLOAD = "download"
    IMAGE_TOO_LARGE = "image_too_large"
    COMPLETION_API = "completion_api"
    MALFORMED_RESPONSE = "malformed_response"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"


class PinyinBotError(Exception):
    """Base class for all classified failures.

    Attributes:
        kind: The error classification driving the user-facing reply.
        status: Upstream HTTP status, when the failure came from an HTTP call.
    """

    kind: ErrorKind = ErrorKind.COMPLETION_API

    def __init__(self, message: str = "", status: int | None = None):
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value
        self.status = status


class ConfigurationError(PinyinBotError):
    kind = ErrorKind.CONFIGURATION


class FileResolutionError(PinyinBotError):
    kind = ErrorKind.FILE_RESOLUTION


class DownloadError(PinyinBotError):
    kind = ErrorKind.DOWNLOAD


class ImageTooLarge(PinyinBotError):
    kind = ErrorKind.IMAGE_TOO_LARGE


class CompletionAPIError(PinyinBotError):
    kind = ErrorKind.COMPLETION_API

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"[{self.status}] {self.message}"


class MalformedResponse(PinyinBotError):
    kind = ErrorKind.MALFORMED_RESPONSE


class RateLimited(PinyinBotError):
    kind = ErrorKind.RATE_LIMITED


class HandlerTimeout(PinyinBotError):
    kind = ErrorKind.TIMEOUT


USER_MESSAGES: Final[dict[ErrorKind, str]] = {
    ErrorKind.CONFIGURATION: S.CONFIGURATION_ERROR,
    ErrorKind.FILE_RESOLUTION: S.GENERIC_ERROR,
    ErrorKind.DOWNLOAD: S.GENERIC_ERROR,
    ErrorKind.IMAGE_TOO_LARGE: S.IMAGE_TOO_LARGE,
    ErrorKind.COMPLETION_API: S.GENERIC_ERROR,
    ErrorKind.MALFORMED_RESPONSE: S.GENERIC_ERROR,
    ErrorKind.RATE_LIMITED: S.RATE_LIMITED,
    ErrorKind.TIMEOUT: S.TIMED_OUT,
}


def user_message_for(error: BaseException) -> str:
    """Map any exception to the apology shown in the chat."""
    if isinstance(error, PinyinBotError):
        return USER_MESSAGES.get(error.kind, S.GENERIC_ERROR)
    return S.GENERIC_ERROR
