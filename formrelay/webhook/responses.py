"""Формирование HTTP ответов по итогам обработки."""

from datetime import datetime

from fastapi.responses import JSONResponse

from ..core.exceptions import FormRelayError, IntegrationError
from ..core.models import PipelineState, RelayResult


def success_response(result: RelayResult, request_id: str) -> JSONResponse:
    """200 с ID созданных и связанных записей."""

    result.transitions.append(PipelineState.RESPONDED)

    return JSONResponse(
        status_code=200,
        content={
            "status": "success",
            "request_id": request_id,
            "processed_at": datetime.now().isoformat(),
            **result.to_response()
        }
    )


def error_response(
    error: FormRelayError,
    request_id: str,
    debug: bool = False
) -> JSONResponse:
    """
    Ответ на известную ошибку.

    400 ввод, 401 подпись, 500 конфигурация, 502 отказ Attio.
    """

    content = {
        "status": "error",
        "request_id": request_id,
        "error": error.message,
        "processed_at": datetime.now().isoformat()
    }

    state = error.details.get("state")
    if state:
        content["state"] = state
        content["transitions"] = error.details.get("transitions", [])

    if isinstance(error, IntegrationError):
        content["upstream"] = {
            "path": error.details.get("path"),
            "status_code": error.details.get("status_code")
        }
        if debug:
            content["upstream"]["response"] = error.details.get("response")

    if debug and "errors" in error.details:
        content["errors"] = error.details["errors"]

    return JSONResponse(status_code=error.status_code, content=content)


def internal_error_response(
    error: Exception,
    request_id: str,
    debug: bool = False
) -> JSONResponse:
    """500 для необработанных исключений. Детали только в DEBUG."""

    content = {
        "status": "error",
        "request_id": request_id,
        "error": "Internal server error",
        "processed_at": datetime.now().isoformat()
    }

    if debug:
        content["detail"] = str(error)
        content["error_type"] = type(error).__name__

    return JSONResponse(status_code=500, content=content)
