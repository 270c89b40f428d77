"""Vision completion clients for the pinyin bot.

Two providers share one contract: submit one image plus the fixed pinyin
prompt, return the first text segment of the answer. Failures are classified
where they happen, from the provider's structured error body.
"""

from __future__ import annotations

import base64
import json
import threading
from typing import Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from config import (
    logger,
    PROMPTS,
    PROVIDER_GEMINI,
    Settings,
)
from constants import COMPLETION_DEFAULTS, ERROR_LOG_CONSTANTS
from errors import (
    CompletionAPIError,
    ConfigurationError,
    ImageTooLarge,
    MalformedResponse,
    PinyinBotError,
    RateLimited,
)

from .common import extract_gemini_response_text

PINYIN_PROMPT: str = PROMPTS.get("pinyin", {}).get("image", "")

# Anthropic error types (error.type in the JSON body)
_RATE_LIMIT_ERROR_TYPES = frozenset({"rate_limit_error"})
_TOO_LARGE_ERROR_TYPES = frozenset({"request_too_large"})
_IMAGE_SIZE_MARKERS = ("image_too_large", "image exceeds", "image is too large")


class CompletionClient(Protocol):
    async def complete(self, image: bytes, media_type: str) -> str: ...


def _is_image_size_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _IMAGE_SIZE_MARKERS)


def classify_completion_failure(
    status: int, message: str, error_type: str | None = None
) -> PinyinBotError:
    """Turn a non-success completion response into the matching error kind."""
    if status == 429 or error_type in _RATE_LIMIT_ERROR_TYPES:
        return RateLimited(message, status=status)
    if (
        status == 413
        or error_type in _TOO_LARGE_ERROR_TYPES
        or _is_image_size_message(message)
    ):
        return ImageTooLarge(message, status=status)
    return CompletionAPIError(message, status=status)


def _parse_error_body(body_text: str) -> tuple[str, str | None]:
    """Extract (message, error_type) from an Anthropic error body."""
    try:
        data = json.loads(body_text)
    except ValueError:
        return body_text[: ERROR_LOG_CONSTANTS.MAX_ERROR_BODY_LENGTH], None

    if not isinstance(data, dict):
        return body_text[: ERROR_LOG_CONSTANTS.MAX_ERROR_BODY_LENGTH], None

    error = data.get("error")
    if isinstance(error, dict):
        return (
            error.get("message") or data.get("message") or body_text,
            error.get("type"),
        )
    return data.get("message") or body_text, None


class AnthropicCompletionClient:
    """Anthropic Messages API over a plain httpx client."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        prompt: str = PINYIN_PROMPT,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._prompt = prompt

    def _build_request_body(self, image: bytes, media_type: str) -> dict:
        return {
            "model": self._settings.completion_model,
            "max_tokens": self._settings.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64.b64encode(image).decode("ascii"),
                            },
                        },
                        {"type": "text", "text": self._prompt},
                    ],
                }
            ],
        }

    async def _post(self, body: dict) -> httpx.Response:
        headers = {
            "x-api-key": self._settings.completion_api_key,
            "anthropic-version": COMPLETION_DEFAULTS.ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        if self._http_client is not None:
            return await self._http_client.post(
                self._settings.completion_api_url,
                json=body,
                headers=headers,
                timeout=self._settings.completion_timeout_seconds,
            )
        async with httpx.AsyncClient(timeout=self._settings.completion_timeout_seconds) as client:
            return await client.post(
                self._settings.completion_api_url, json=body, headers=headers
            )

    async def complete(self, image: bytes, media_type: str) -> str:
        """
        Submit one image with the pinyin prompt.

        Returns:
            The first text block of the completion

        Raises:
            ConfigurationError: no API key configured (checked before any network call)
            RateLimited / ImageTooLarge / CompletionAPIError: non-success response
            MalformedResponse: success response without a text block
        """
        if not self._settings.completion_api_key:
            raise ConfigurationError("Completion API key is not set")

        logger.info(f"Calling completion API ({self._settings.completion_model})...")
        try:
            response = await self._post(self._build_request_body(image, media_type))
        except httpx.HTTPError as e:
            raise CompletionAPIError(f"Completion API request failed: {e}") from e

        if not response.is_success:
            message, error_type = _parse_error_body(response.text)
            logger.error(f"Completion API error: {response.status_code} {response.text[:500]}")
            raise classify_completion_failure(response.status_code, message, error_type)

        try:
            result = response.json()
        except ValueError as e:
            raise MalformedResponse("Completion API returned invalid JSON") from e

        content = result.get("content") if isinstance(result, dict) else None
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type", "text") == "text":
                    text = block.get("text")
                    if isinstance(text, str) and text:
                        return text

        logger.error(f"Unexpected API response structure: {str(result)[:500]}")
        raise MalformedResponse("Unexpected response format from API")


class GeminiCompletionClient:
    """Google Gemini through the google-genai SDK."""

    def __init__(self, settings: Settings, prompt: str = PINYIN_PROMPT) -> None:
        self._settings = settings
        self._prompt = prompt
        # Lazy initialization to avoid failing at startup if the key is missing
        self._client: genai.Client | None = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> genai.Client:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = genai.Client(api_key=self._settings.completion_api_key)
        return self._client

    async def complete(self, image: bytes, media_type: str) -> str:
        if not self._settings.completion_api_key:
            raise ConfigurationError("Completion API key is not set")

        contents = [
            types.Part.from_bytes(data=image, mime_type=media_type),
            self._prompt,
        ]
        config = types.GenerateContentConfig(max_output_tokens=self._settings.max_tokens)

        logger.info(f"Calling Gemini ({self._settings.completion_model})...")
        try:
            response = await self._get_client().aio.models.generate_content(
                model=self._settings.completion_model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            message = e.message or str(e)
            raise classify_completion_failure(e.code, message, e.status) from e

        text = extract_gemini_response_text(response)
        if not text:
            raise MalformedResponse("Gemini returned no text")
        return text


def build_completion_client(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> CompletionClient:
    """Create the completion client for the configured provider."""
    if settings.completion_provider == PROVIDER_GEMINI:
        return GeminiCompletionClient(settings)
    return AnthropicCompletionClient(settings, http_client=http_client)
