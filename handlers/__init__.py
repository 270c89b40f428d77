"""
Request handlers for the pinyin bot.

This package contains modular handlers split by functionality:
- events: Inbound Telegram payload parsing and classification
- images: Photo variant selection, download and re-encoding
- completion: Vision completion API clients
- translation: The end-to-end translation request handler
- common: Shared helpers (error logging, Gemini response parsing)
"""

from __future__ import annotations

from .common import log_error_with_context

from .events import (
    EmptyEvent,
    EventKind,
    ImageVariant,
    InboundEvent,
    PhotoEvent,
    TextEvent,
    classify_event,
    parse_inbound_event,
)

from .images import (
    SelectedImage,
    check_hard_ceiling,
    check_payload_size,
    estimate_variant_size,
    fetch_image,
    prepare_image,
    select_variant,
    transform_image,
)

from .completion import (
    PINYIN_PROMPT,
    AnthropicCompletionClient,
    CompletionClient,
    GeminiCompletionClient,
    build_completion_client,
    classify_completion_failure,
)

from .translation import (
    Stage,
    TranslationHandler,
    TranslationReply,
    format_error_reply,
    format_translation_reply,
)

__all__ = [
    # Common utilities
    "log_error_with_context",
    # Events
    "EmptyEvent",
    "EventKind",
    "ImageVariant",
    "InboundEvent",
    "PhotoEvent",
    "TextEvent",
    "classify_event",
    "parse_inbound_event",
    # Images
    "SelectedImage",
    "check_hard_ceiling",
    "check_payload_size",
    "estimate_variant_size",
    "fetch_image",
    "prepare_image",
    "select_variant",
    "transform_image",
    # Completion
    "PINYIN_PROMPT",
    "AnthropicCompletionClient",
    "CompletionClient",
    "GeminiCompletionClient",
    "build_completion_client",
    "classify_completion_failure",
    # Translation
    "Stage",
    "TranslationHandler",
    "TranslationReply",
    "format_error_reply",
    "format_translation_reply",
]
