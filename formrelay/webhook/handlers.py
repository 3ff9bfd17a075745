"""Обработчики webhook событий Tally."""

import json
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..core.exceptions import InputValidationError
from ..core.models import FormSubmission, RelayResult, TallyWebhookPayload
from ..integrations.attio import AttioClient
from ..services.relay_service import LeadRelayService
from ..utils.logger import get_logger

logger = get_logger(__name__)


def parse_json_body(body: bytes) -> Any:
    """Разбор тела запроса как JSON."""

    try:
        return json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error("Invalid JSON payload", error=str(e))
        raise InputValidationError("Invalid JSON payload")


def parse_submission(payload: Any) -> FormSubmission:
    """
    Валидация структуры вебхука: нужен объект с data.fields.

    Raises:
        InputValidationError: Payload не соответствует формату Tally
    """

    if not isinstance(payload, dict):
        raise InputValidationError("Payload must be a JSON object")

    try:
        return TallyWebhookPayload.model_validate(payload).data
    except ValidationError as e:
        logger.error(
            "Malformed webhook payload",
            errors=e.errors(include_url=False, include_context=False, include_input=False)
        )
        raise InputValidationError(
            "Missing or malformed data.fields",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)}
        )


class TallyWebhookHandler:
    """Обработчик webhook событий от Tally."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.settings = settings
        self.transport = transport

    async def handle_tally_webhook(
        self,
        payload: Any,
        request_id: str
    ) -> RelayResult:
        """
        Обработка webhook от Tally.

        Args:
            payload: JSON данные webhook
            request_id: ID запроса для трассировки

        Returns:
            RelayResult: Результат обработки

        Raises:
            FormRelayError: Ошибки ввода, конфигурации или Attio
        """

        submission = parse_submission(payload)

        logger.info(
            "Starting Tally webhook processing",
            request_id=request_id,
            fields_count=len(submission.fields),
            external_id=submission.external_id
        )

        # Отдельный HTTP клиент на каждый запрос
        async with AttioClient(
            self.settings.ATTIO_TOKEN,
            base_url=self.settings.ATTIO_API_URL,
            transport=self.transport
        ) as client:
            service = LeadRelayService(self.settings, client)
            return await service.relay(submission)
