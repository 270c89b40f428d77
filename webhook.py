import os
import asyncio
import base64
import binascii
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, ValidationError
from telegram import Bot
import uvicorn

from config import Settings, logger, validate_config, validate_prompts
from constants import COMPLETION_DEFAULTS, TELEGRAM_CONSTANTS
from errors import ConfigurationError, MalformedResponse, PinyinBotError
from handlers import CompletionClient, TranslationHandler, build_completion_client
import strings as S

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_REJECTED_METHODS = ["GET", "PUT", "PATCH", "DELETE"]


class TranslateRequest(BaseModel):
    """Body of POST /api/translate."""

    image: str = Field(min_length=1)
    mimeType: str | None = None


def _ok() -> JSONResponse:
    # Telegram disables webhooks that keep answering with non-200 codes
    return JSONResponse({"ok": True}, status_code=200)


def _api_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=CORS_HEADERS)


def _decode_image(raw: str, mime_type: str | None) -> tuple[bytes, str]:
    """Decode the base64 image field, accepting data URLs as well."""
    if raw.startswith("data:") and "," in raw:
        header, raw = raw.split(",", 1)
        if not mime_type:
            mime_type = header[len("data:"):].split(";", 1)[0] or None
    data = base64.b64decode(raw, validate=True)
    if not data:
        raise ValueError("empty image")
    return data, mime_type or COMPLETION_DEFAULTS.DIRECT_DEFAULT_MEDIA_TYPE


def create_app(
    settings: Settings | None = None,
    *,
    bot: Bot | None = None,
    completion_client: CompletionClient | None = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    When ``bot`` is given the handler is wired immediately; otherwise the
    lifespan validates configuration, creates and initializes the bot, and
    registers the webhook with Telegram when WEBHOOK_URL is set. If validation
    fails the app still starts: /webhook acknowledges and drops updates, and
    /api/translate keeps working.
    """
    settings = settings or Settings.from_env()
    completion_client = completion_client or build_completion_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        owned_bot = None
        try:
            if app.state.handler is not None:
                logger.info("Using injected bot")
            elif not validate_config(settings):
                # /api/translate only needs the completion key
                logger.critical("Telegram webhook disabled: configuration validation failed")
            else:
                owned_bot = Bot(token=settings.telegram_bot_token)
                await owned_bot.initialize()
                app.state.handler = TranslationHandler(settings, owned_bot, completion_client)

                if settings.webhook_url and settings.webhook_url != "placeholder":
                    try:
                        await owned_bot.set_webhook(
                            url=settings.webhook_url,
                            secret_token=settings.webhook_secret,
                        )
                        logger.info(f"Webhook set to {settings.webhook_url}")
                    except Exception as e:
                        logger.warning(f"Could not set webhook during startup: {e}")
                else:
                    logger.info("WEBHOOK_URL not set - webhook will be configured externally")

            yield
        except Exception as e:
            logger.critical(f"Startup failed: {e}")
            raise
        finally:
            if owned_bot is not None:
                logger.info("Shutting down bot")
                try:
                    await owned_bot.shutdown()
                except Exception as e:
                    logger.error(f"Error in shutdown: {e}")

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.completion_client = completion_client
    app.state.handler = (
        TranslationHandler(settings, bot, completion_client) if bot is not None else None
    )

    @app.get("/")
    async def root():
        """Root endpoint for health checks."""
        return {"status": "running", "message": "Pinyin bot webhook is active"}

    @app.get("/health")
    async def health_check():
        """Report whether the bot has what it needs to serve requests."""
        prompts_ok, missing = validate_prompts()
        health_status = {
            "status": "healthy",
            "service": "pinyin-bot",
            "checks": {
                "telegram_bot_token": "ok" if settings.telegram_bot_token else "missing",
                "completion_api_key": "ok" if settings.completion_api_key else "missing",
                "completion_provider": settings.completion_provider,
                "prompts": "ok" if prompts_ok else f"missing: {', '.join(missing)}",
            },
        }

        if not settings.telegram_bot_token or not prompts_ok:
            health_status["status"] = "degraded"
        elif not settings.completion_api_key:
            # Replies still go out, but every translation fails
            health_status["status"] = "degraded"

        if health_status["status"] == "healthy":
            return health_status
        return JSONResponse(status_code=503, content=health_status)

    @app.post("/webhook")
    async def webhook(request: Request):
        """Handle incoming webhook requests from Telegram. Always acknowledges with 200."""
        if settings.webhook_secret:
            secret_header = request.headers.get(TELEGRAM_CONSTANTS.SECRET_TOKEN_HEADER)
            if secret_header != settings.webhook_secret:
                client_host = request.client.host if request.client else "unknown"
                logger.warning(f"Webhook request with invalid secret token from {client_host}")
                return Response(status_code=403)

        try:
            data = await request.json()
        except ValueError as e:
            logger.warning(f"Webhook body is not valid JSON: {e}")
            return _ok()

        handler = request.app.state.handler
        if handler is None:
            logger.error("Webhook called before the bot was initialized")
            return _ok()

        try:
            await handler.handle(data)
        except Exception as e:
            logger.error(f"Error in webhook: {e}", exc_info=e)
        return _ok()

    @app.api_route("/webhook", methods=_REJECTED_METHODS)
    async def webhook_method_not_allowed():
        return JSONResponse({"error": "Method not allowed"}, status_code=405)

    @app.options("/api/translate")
    async def translate_preflight():
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.api_route("/api/translate", methods=_REJECTED_METHODS)
    async def translate_method_not_allowed():
        return _api_error("Method Not Allowed", 405)

    @app.post("/api/translate")
    async def translate_image(request: Request):
        """Translate a base64 image posted directly, without a Telegram envelope."""
        try:
            body = TranslateRequest.model_validate_json(await request.body())
        except ValidationError as e:
            logger.info(f"Rejected direct translation request: {e.error_count()} validation error(s)")
            return _api_error(S.API_NO_IMAGE, 400)

        try:
            image, media_type = _decode_image(body.image, body.mimeType)
        except (binascii.Error, ValueError):
            return _api_error(S.API_INVALID_IMAGE, 400)

        if not settings.completion_api_key:
            logger.critical("Completion API key is not set; direct translation refused")
            return _api_error(S.API_KEY_MISSING, 500)

        try:
            async with asyncio.timeout(settings.handler_deadline_seconds):
                text = await completion_client.complete(image, media_type)
        except TimeoutError:
            logger.error("Direct translation timed out")
            return _api_error(S.API_TIMED_OUT, 504)
        except ConfigurationError:
            return _api_error(S.API_KEY_MISSING, 500)
        except MalformedResponse:
            return _api_error(S.API_UNEXPECTED_FORMAT, 500)
        except PinyinBotError as e:
            if e.status is None:
                logger.error(f"Translation error: {e}")
                return _api_error(S.API_TRANSLATION_FAILED.format(error=e.message), 500)
            return _api_error(S.API_ERROR_PREFIX + e.message, e.status)
        except Exception as e:
            logger.error(f"Translation error: {e}", exc_info=e)
            return _api_error(S.API_TRANSLATION_FAILED.format(error=e), 500)

        return PlainTextResponse(text, status_code=200, headers=CORS_HEADERS)

    return app


app = create_app()

if __name__ == "__main__":
    # Get the port from the environment variable, default to 8080
    port = int(os.environ.get("PORT", 8080))
    # Run the FastAPI app using uvicorn
    uvicorn.run(app, host="0.0.0.0", port=port)
