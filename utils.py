"""Utility functions for the pinyin bot.

This module provides common helpers used across the application,
including HTML escaping and size formatting.
"""

import html

from constants import MB


def safe_html(text: str, max_length: int | None = None) -> str:
    """
    Escape HTML special characters and optionally truncate text.

    Args:
        text: The text to escape
        max_length: Optional maximum length (truncates with "..." if exceeded)

    Returns:
        HTML-escaped and optionally truncated text
    """
    if not text:
        return ""

    escaped = html.escape(text)

    if max_length and len(escaped) > max_length:
        # Truncate and add ellipsis, ensuring we don't cut in the middle of an HTML entity
        truncated = escaped[: max_length - 3]
        last_amp = truncated.rfind("&")
        if last_amp != -1 and ";" not in truncated[last_amp:]:
            truncated = truncated[:last_amp]
        return truncated + "..."

    return escaped


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to specified length with suffix.

    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: String to append when truncating

    Returns:
        Truncated text with suffix if needed
    """
    if not text or len(text) <= max_length:
        return text

    return text[: max_length - len(suffix)] + suffix


def base64_length(byte_count: int) -> int:
    """Length of the base64 text produced for ``byte_count`` raw bytes."""
    return 4 * ((byte_count + 2) // 3)


def format_megabytes(byte_count: int | None) -> str:
    """Format a byte count as megabytes for log lines (e.g. "2.35 MB")."""
    if byte_count is None:
        return "unknown size"
    return f"{byte_count / MB:.2f} MB"
