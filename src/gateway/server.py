from __future__ import annotations

import argparse
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relay import __version__
from relay.config import Settings, load_settings
from relay.errors import UpstreamError
from relay.pipeline import ChatRelay, build_relay
from relay.types import AnswerSource

from .keepalive import KeepAlive
from .notify import PushNotifier
from .schemas import BatchNotificationRequest, ChatNotificationRequest, CompletionProbeRequest, DetectIntentRequest

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    relay: Optional[ChatRelay] = None,
    notifier: Optional[PushNotifier] = None,
    keep_alive: Optional[KeepAlive] = None,
) -> FastAPI:
    settings = settings or load_settings()
    relay = relay or build_relay(settings)
    notifier = notifier or PushNotifier(settings.firebase_credentials)
    if keep_alive is None and settings.keep_alive_enabled:
        keep_alive = KeepAlive(settings.base_url, interval=settings.keep_alive_interval)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "%s relay ready: completion %s, notifications %s",
            settings.assistant_name,
            "configured" if relay.completion_available else "NOT configured",
            "configured" if notifier.configured else "NOT configured",
        )
        if keep_alive is not None:
            keep_alive.start()
        yield
        if keep_alive is not None:
            await keep_alive.stop()

    app = FastAPI(title="kb-chat-relay", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [
            {"field": ".".join(str(part) for part in err["loc"] if part != "body"), "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})

    @app.post("/detectIntent")
    async def detect_intent(body: DetectIntentRequest) -> Any:
        logger.info("New query from session %s: %r", body.sessionId, body.query)
        try:
            response = await relay.respond(body.sessionId, body.query, body.languageCode)
        except UpstreamError as exc:
            logger.error("Knowledge base lookup failed (%s): %s", exc.kind.value, exc)
            return JSONResponse(status_code=500, content={"error": str(exc)})
        except Exception as exc:
            logger.exception("Unhandled error in /detectIntent")
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return response.to_dict()

    @app.post("/send-chat-notification")
    async def send_chat_notification(body: ChatNotificationRequest) -> Any:
        if not notifier.configured:
            return _notifications_unavailable()
        try:
            result = await notifier.send_chat(body.to_notification())
        except Exception as exc:
            logger.exception("Unhandled error in /send-chat-notification")
            return _delivery_failed(exc)
        if result.success:
            return {"success": True, "messageId": result.message_id}
        status_code = 404 if result.code == "invalid_token" else 500
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": result.error, "code": result.code},
        )

    @app.post("/send-batch-notifications")
    async def send_batch_notifications(body: BatchNotificationRequest) -> Any:
        if not notifier.configured:
            return _notifications_unavailable()
        try:
            batch = await notifier.send_batch([item.to_notification() for item in body.notifications])
        except Exception as exc:
            logger.exception("Unhandled error in /send-batch-notifications")
            return _delivery_failed(exc)
        return {
            "success": True,
            "successCount": batch.success_count,
            "failureCount": batch.failure_count,
            "responses": [result.to_dict() for result in batch.results],
        }

    @app.post("/test-completion")
    @app.post("/test-groq")
    async def test_completion(body: CompletionProbeRequest) -> Any:
        if not relay.completion_available:
            return JSONResponse(status_code=400, content={"error": "Completion API key not configured", "success": False})
        result = await relay.enhance(body.query, body.kbText)
        content = {
            "original": body.kbText,
            "enhanced": result.fulfillment_text,
            "answerSource": result.answer_source.value,
            "success": result.answer_source is AnswerSource.KB_ENHANCED,
        }
        if result.answer_source is AnswerSource.KB_ERROR_FALLBACK:
            content["error"] = "Completion request failed"
            return JSONResponse(status_code=500, content=content)
        return content

    @app.get("/ping")
    async def ping() -> Dict[str, Any]:
        return {
            "status": "alive",
            "uptime": round(time.monotonic() - started_at, 3),
            "cache_size": len(relay.cache),
        }

    @app.get("/")
    async def index() -> Dict[str, Any]:
        return {
            "status": "running",
            "service": f"{settings.assistant_name} knowledge base relay",
            "version": __version__,
            "completionConfigured": relay.completion_available,
            "notificationsConfigured": notifier.configured,
            "model": settings.completion_model,
            "keepAlive": keep_alive is not None,
            "endpoints": {
                "detectIntent": "POST /detectIntent",
                "sendChatNotification": "POST /send-chat-notification",
                "sendBatchNotifications": "POST /send-batch-notifications",
                "testCompletion": "POST /test-completion",
                "testGroq": "POST /test-groq",
                "ping": "GET /ping",
                "health": "GET /",
            },
        }

    return app


def _notifications_unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": "Push notifications are not configured", "code": "not_configured"},
    )


def _delivery_failed(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc), "code": "delivery_error"})


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the knowledge base chat relay.")
    parser.add_argument("--config", default=None, help="Path to a JSON or YAML config file.")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (defaults to PORT).")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    args = parser.parse_args()

    configure_logging(getattr(logging, args.log_level.upper(), logging.INFO))
    settings = load_settings(args.config)

    import uvicorn

    uvicorn.run(create_app(settings), host=args.host, port=args.port or settings.port, log_config=None)


if __name__ == "__main__":
    main()
