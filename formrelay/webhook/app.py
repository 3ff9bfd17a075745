"""FastAPI приложение для webhook endpoint Tally."""

from contextlib import asynccontextmanager
from datetime import datetime
from uuid import uuid4

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..core.exceptions import FormRelayError
from ..utils.logger import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from .auth import SIGNATURE_HEADER, verify_tally_signature
from .handlers import TallyWebhookHandler, parse_json_body
from .responses import error_response, internal_error_response, success_response

logger = get_logger(__name__)

SERVICE_NAME = "Tally to Attio Webhook API"
SERVICE_VERSION = "1.0.0"


def create_app(transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """
    Создание FastAPI приложения.

    Args:
        transport: HTTP транспорт для Attio клиента (подменяется в тестах)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Управление жизненным циклом приложения."""
        logger.info("Starting webhook application")
        yield
        logger.info("Webhook application stopped")

    app = FastAPI(
        title=SERVICE_NAME,
        description="Webhook endpoint для передачи заявок Tally в Attio",
        version=SERVICE_VERSION,
        lifespan=lifespan
    )
    app.state.attio_transport = transport

    @app.get("/")
    async def root():
        """Корневая страница."""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "status": "running",
            "timestamp": datetime.now().isoformat()
        }

    @app.get("/health")
    async def health_check(settings: Settings = Depends(get_settings)):
        """Health check endpoint."""

        configured = bool(settings.ATTIO_TOKEN)
        return JSONResponse(
            status_code=200 if configured else 503,
            content={
                "status": "healthy" if configured else "misconfigured",
                "timestamp": datetime.now().isoformat(),
                "attio_token": "configured" if configured else "missing",
                "signature_verification": bool(settings.TALLY_SIGNING_SECRET)
            }
        )

    @app.post("/webhook/tally")
    async def tally_webhook(request: Request, settings: Settings = Depends(get_settings)):
        """
        Webhook endpoint для приема ответов на формы Tally.

        Подпись проверяется только если задан TALLY_SIGNING_SECRET.
        """

        request_id = f"req_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"
        bind_request_context(request_id)

        try:
            body = await request.body()

            if settings.TALLY_SIGNING_SECRET:
                verify_tally_signature(
                    body,
                    request.headers.get(SIGNATURE_HEADER),
                    settings.TALLY_SIGNING_SECRET
                )

            payload = parse_json_body(body)

            logger.info(
                "Received Tally webhook",
                webhook_event=payload.get("eventType") if isinstance(payload, dict) else None,
                payload_size=len(body)
            )

            handler = TallyWebhookHandler(settings, transport=request.app.state.attio_transport)
            result = await handler.handle_tally_webhook(payload, request_id=request_id)

            logger.info(
                "Tally webhook processed successfully",
                person_id=result.person_id,
                company_id=result.company_id,
                deal_id=result.deal_id,
                deal_created=result.deal_created
            )

            return success_response(result, request_id)

        except FormRelayError as e:
            log = logger.warning if e.status_code < 500 else logger.error
            log(
                "Tally webhook rejected",
                status_code=e.status_code,
                error=e.message,
                error_type=type(e).__name__,
                state=e.details.get("state")
            )
            return error_response(e, request_id, debug=settings.DEBUG)

        except Exception as e:
            logger.error(
                "Error processing Tally webhook",
                error=str(e),
                error_type=type(e).__name__
            )
            return internal_error_response(e, request_id, debug=settings.DEBUG)

        finally:
            clear_request_context()

    return app


_settings = get_settings()
configure_logging(_settings.LOG_LEVEL, _settings.LOG_FORMAT)

app = create_app()


if __name__ == "__main__":
    """Запуск приложения для разработки."""

    import uvicorn

    logger.info("Starting webhook server in development mode")

    uvicorn.run(
        "formrelay.webhook.app:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.DEBUG,
        log_level="debug" if _settings.DEBUG else "info"
    )
