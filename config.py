"""Configuration module for the pinyin bot."""

from __future__ import annotations

import os
import re
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from dotenv import load_dotenv

from constants import (
    MB,
    IMAGE_LIMITS,
    COMPLETION_DEFAULTS,
    API_TIMEOUTS,
)

# Load environment variables from .env file
load_dotenv()

# --- Logging Setup ---
LOG_DIR = os.environ.get("PINYIN_BOT_LOG_PATH", "logs")
os.makedirs(LOG_DIR, exist_ok=True)

# Log rotation settings
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB per file
LOG_BACKUP_COUNT = 5  # Keep 5 backup files (total ~60 MB max)

# Set up logging with UTC timestamps
formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
formatter.converter = lambda *args: datetime.now(timezone.utc).timetuple()

# Set up rotating file handler (auto-rotates when file reaches 10MB)
file_handler = RotatingFileHandler(
    os.path.join(LOG_DIR, "bot.log"),
    maxBytes=LOG_MAX_BYTES,
    backupCount=LOG_BACKUP_COUNT,
)
file_handler.setFormatter(formatter)

# Set up console handler
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)

# Configure logging
logging.basicConfig(level=logging.INFO, handlers=[file_handler, console_handler])
logger = logging.getLogger(__name__)

PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_GEMINI = "gemini"
SUPPORTED_PROVIDERS = (PROVIDER_ANTHROPIC, PROVIDER_GEMINI)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class Settings:
    """Read-only process configuration, passed explicitly to the handler and app."""

    telegram_bot_token: str | None = None
    completion_api_key: str | None = None
    completion_provider: str = PROVIDER_ANTHROPIC
    completion_model: str = COMPLETION_DEFAULTS.ANTHROPIC_MODEL
    completion_api_url: str = COMPLETION_DEFAULTS.ANTHROPIC_API_URL
    max_tokens: int = COMPLETION_DEFAULTS.MAX_TOKENS

    webhook_url: str | None = None
    webhook_secret: str | None = None

    soft_threshold_bytes: int = IMAGE_LIMITS.SOFT_THRESHOLD_BYTES
    hard_ceiling_bytes: int = IMAGE_LIMITS.HARD_CEILING_BYTES
    max_payload_bytes: int = IMAGE_LIMITS.MAX_PAYLOAD_BYTES
    bytes_per_pixel: float = IMAGE_LIMITS.ESTIMATED_BYTES_PER_PIXEL

    transform_enabled: bool = True
    max_dimension: int = IMAGE_LIMITS.MAX_IMAGE_DIMENSION
    jpeg_quality: int = IMAGE_LIMITS.JPEG_QUALITY

    handler_deadline_seconds: float = API_TIMEOUTS.HANDLER_DEADLINE
    completion_timeout_seconds: float = API_TIMEOUTS.COMPLETION_HTTP

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the process environment (and .env file)."""
        provider = os.environ.get("COMPLETION_PROVIDER", PROVIDER_ANTHROPIC).strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            logger.warning(
                f"Unknown COMPLETION_PROVIDER {provider!r}, falling back to {PROVIDER_ANTHROPIC}"
            )
            provider = PROVIDER_ANTHROPIC

        if provider == PROVIDER_GEMINI:
            api_key = os.environ.get("GEMINI_API_KEY")
            default_model = COMPLETION_DEFAULTS.GEMINI_MODEL
        else:
            api_key = os.environ.get("CLAUDE_API_KEY") or os.environ.get("ANTHROPIC_API_KEY")
            default_model = COMPLETION_DEFAULTS.ANTHROPIC_MODEL

        return cls(
            telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN"),
            completion_api_key=api_key,
            completion_provider=provider,
            completion_model=os.environ.get("COMPLETION_MODEL") or default_model,
            completion_api_url=os.environ.get("COMPLETION_API_URL")
            or COMPLETION_DEFAULTS.ANTHROPIC_API_URL,
            max_tokens=_env_int("COMPLETION_MAX_TOKENS", COMPLETION_DEFAULTS.MAX_TOKENS),
            webhook_url=os.environ.get("WEBHOOK_URL"),
            webhook_secret=os.environ.get("WEBHOOK_SECRET"),
            soft_threshold_bytes=int(
                _env_float("IMAGE_SOFT_THRESHOLD_MB", IMAGE_LIMITS.SOFT_THRESHOLD_BYTES / MB) * MB
            ),
            hard_ceiling_bytes=int(
                _env_float("IMAGE_HARD_CEILING_MB", IMAGE_LIMITS.HARD_CEILING_BYTES / MB) * MB
            ),
            max_payload_bytes=int(
                _env_float("COMPLETION_MAX_PAYLOAD_MB", IMAGE_LIMITS.MAX_PAYLOAD_BYTES / MB) * MB
            ),
            bytes_per_pixel=_env_float(
                "IMAGE_BYTES_PER_PIXEL", IMAGE_LIMITS.ESTIMATED_BYTES_PER_PIXEL
            ),
            transform_enabled=_env_bool("IMAGE_TRANSFORM_ENABLED", True),
            max_dimension=_env_int("IMAGE_MAX_DIMENSION", IMAGE_LIMITS.MAX_IMAGE_DIMENSION),
            jpeg_quality=_env_int("IMAGE_JPEG_QUALITY", IMAGE_LIMITS.JPEG_QUALITY),
            handler_deadline_seconds=_env_float(
                "HANDLER_DEADLINE_SECONDS", API_TIMEOUTS.HANDLER_DEADLINE
            ),
            completion_timeout_seconds=_env_float(
                "COMPLETION_TIMEOUT_SECONDS", API_TIMEOUTS.COMPLETION_HTTP
            ),
        )


def validate_config(settings: Settings, check_prompts: bool = True) -> bool:
    """Validate that required settings and prompts are present.

    A missing completion API key is reported loudly but does not fail
    validation: translation requests then fail with a configuration error
    that the user sees as a "contact support" reply.

    Args:
        settings: The settings to validate
        check_prompts: If True, validates that required prompts are loaded
    """
    if not settings.telegram_bot_token:
        logger.error("Error: TELEGRAM_BOT_TOKEN environment variable not set.")
        return False
    if not settings.completion_api_key:
        logger.critical(
            f"Completion API key for provider {settings.completion_provider!r} is not set. "
            "Every translation request will fail until it is configured."
        )
    if settings.soft_threshold_bytes > settings.hard_ceiling_bytes:
        logger.warning(
            "IMAGE_SOFT_THRESHOLD_MB is above IMAGE_HARD_CEILING_MB; "
            "selected variants may be rejected by the hard ceiling."
        )

    if check_prompts:
        prompts_valid, missing = validate_prompts()
        if not prompts_valid:
            logger.error(f"Error: Missing required prompts: {', '.join(missing)}")
            return False

    return True


# --- Prompt Loading ---
PROMPTS_DIR = Path(__file__).parent / "prompts"


def _load_prompts_from_file(filename: str) -> dict[str, str]:
    """
    Load prompts from a markdown file.

    The file format uses '---' separators and '## section_name' headers.
    Returns a dict mapping section names to prompt text.
    """
    filepath = PROMPTS_DIR / filename
    if not filepath.exists():
        logger.warning(f"Prompt file not found: {filepath}")
        return {}

    content = filepath.read_text(encoding="utf-8")

    prompts = {}
    sections = re.split(r"\n---\n", content)

    for section in sections:
        match = re.match(r"##\s+(\w+)\s*\n(.*)", section.strip(), re.DOTALL)
        if match:
            name = match.group(1).strip()
            text = match.group(2).strip()
            prompts[name] = text

    return prompts


def load_all_prompts() -> dict[str, dict[str, str]]:
    """
    Load all prompts from the prompts directory.

    Returns a nested dict: {category: {prompt_name: prompt_text}}
    """
    return {
        "pinyin": _load_prompts_from_file("pinyin.md"),
    }


# Load prompts at module import time
PROMPTS = load_all_prompts()

# Required prompts that must exist for the bot to function
REQUIRED_PROMPTS = [
    ("pinyin", "image"),
]


def validate_prompts() -> tuple[bool, list[str]]:
    """
    Validate that all required prompts are loaded.

    Returns:
        Tuple of (is_valid, list of missing prompts)
    """
    missing = []
    for category, name in REQUIRED_PROMPTS:
        if not PROMPTS.get(category, {}).get(name):
            missing.append(f"{category}.{name}")

    return len(missing) == 0, missing
