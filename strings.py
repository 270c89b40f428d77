"""
Centralized strings file for the pinyin bot.
All user-facing strings live here.

Replies that go out with HTML parse mode must keep their markup valid;
error replies are sent as plain text.
"""

from typing import Final


# =============================================================================
# COMMAND REPLIES
# =============================================================================

HELP_TEXT: Final[str] = """🇨🇳 <b>Chinese to Pinyin Bot</b>

📸 Send me a photo of Chinese text and I'll provide the pinyin pronunciation!

<b>How to use:</b>
1. Take or select a photo with Chinese characters
2. Send it to me
3. Get instant pinyin translation

<b>Tips:</b>
• Clear, well-lit photos work best
• Avoid blurry or angled shots
• If the image is too large, try taking the photo at lower resolution
• I can handle menus, signs, and any Chinese text!"""

SEND_PHOTO_PROMPT: Final[str] = "📸 Please send me a photo with Chinese text to translate!"


# =============================================================================
# RESULT LABELS
# =============================================================================

LABEL_PINYIN_RESULT: Final[str] = "📝 <b>Pinyin Translation:</b>\n\n"


# =============================================================================
# ERROR REPLIES
# =============================================================================

GENERIC_ERROR: Final[str] = "❌ Sorry, something went wrong. Please try again!"

CONFIGURATION_ERROR: Final[str] = "❌ Bot configuration error. Please contact support."

IMAGE_TOO_LARGE: Final[str] = """❌ Image is too large. Please:
• Send a lower resolution photo
• Or crop the image to focus on the text
• Or take the photo from further away"""

RATE_LIMITED: Final[str] = "❌ Too many requests. Please wait a moment and try again."

TIMED_OUT: Final[str] = "❌ That took too long to process. Please try again with a smaller photo."


# =============================================================================
# DIRECT ENDPOINT ERRORS
# =============================================================================

API_NO_IMAGE: Final[str] = "No image data provided"
API_INVALID_IMAGE: Final[str] = "Image data is not valid base64"
API_INVALID_BODY: Final[str] = "Request body must be a JSON object"
API_KEY_MISSING: Final[str] = "Server configuration error: API key not found"
API_ERROR_PREFIX: Final[str] = "API Error: "
API_UNEXPECTED_FORMAT: Final[str] = "Unexpected response format from API"
API_TIMED_OUT: Final[str] = "Translation timed out"
API_TRANSLATION_FAILED: Final[str] = "Translation failed: {error}"
