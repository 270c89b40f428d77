"""Common utilities and helpers for the bot handlers."""

from __future__ import annotations

from config import logger
from constants import ERROR_LOG_CONSTANTS
from errors import ConfigurationError, PinyinBotError


def log_error_with_context(
    error: BaseException,
    context_info: dict | None = None,
    chat_id: int | None = None,
    text_preview: str | None = None,
) -> None:
    """Enhanced error logging with contextual information.

    Configuration errors are logged at CRITICAL level since only an operator
    can fix them.
    """
    error_details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if isinstance(error, PinyinBotError):
        error_details["error_kind"] = error.kind.value
        if error.status is not None:
            error_details["status"] = error.status

    if chat_id is not None:
        error_details["chat_id"] = chat_id

    if text_preview:
        preview = text_preview[: ERROR_LOG_CONSTANTS.MAX_TEXT_PREVIEW]
        if len(text_preview) > ERROR_LOG_CONSTANTS.MAX_TEXT_PREVIEW:
            preview += "..."
        error_details["text_preview"] = preview

    if context_info:
        error_details.update(context_info)

    log_parts = [
        f"Enhanced Error Log - {error_details['error_type']}: {error_details['error_message']}"
    ]
    for key, value in error_details.items():
        if key not in ["error_type", "error_message"]:
            log_parts.append(f"  {key}: {value}")

    if isinstance(error, ConfigurationError):
        logger.critical("\n".join(log_parts))
    elif isinstance(error, PinyinBotError):
        logger.error("\n".join(log_parts))
    else:
        # Unclassified failures keep their traceback
        logger.error("\n".join(log_parts), exc_info=error)


def extract_gemini_response_text(response) -> str:
    """
    Extract text from a Gemini API response, handling thinking models properly.

    Thinking models return parts with a 'thought' attribute that should be skipped
    to only return the actual response content.

    Args:
        response: The Gemini API response object

    Returns:
        Extracted text content from the response, or empty string if none found
    """
    if (
        response.candidates
        and response.candidates[0].content
        and response.candidates[0].content.parts
    ):
        for part in response.candidates[0].content.parts:
            # Skip thought parts from thinking models
            if getattr(part, "thought", False):
                continue
            text = getattr(part, "text", None)
            if text:
                return text

    try:
        return response.text or ""
    except ValueError:
        # .text raises when the candidate was blocked
        return ""
