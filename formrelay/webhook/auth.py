"""Проверка подписи вебхуков Tally."""

import base64
import hashlib
import hmac

from ..core.exceptions import WebhookAuthError
from ..utils.logger import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "Tally-Signature"


def compute_tally_signature(body: bytes, secret: str) -> str:
    """Base64 от HMAC-SHA256 тела запроса."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_tally_signature(body: bytes, signature: str | None, secret: str) -> None:
    """
    Проверка подписи Tally-Signature.

    Args:
        body: Тело запроса (bytes)
        signature: Значение заголовка Tally-Signature
        secret: Секрет подписи из настроек

    Raises:
        WebhookAuthError: Подпись отсутствует или не совпадает
    """

    if not signature:
        logger.warning("Missing signature header", header=SIGNATURE_HEADER)
        raise WebhookAuthError("Missing webhook signature")

    expected = compute_tally_signature(body, secret)

    if not hmac.compare_digest(expected, signature.strip()):
        logger.warning(
            "Invalid webhook signature",
            signature=signature[:12] + "..." if len(signature) > 12 else signature,
            body_size=len(body)
        )
        raise WebhookAuthError("Invalid webhook signature")

    logger.debug("Webhook signature verified", body_size=len(body))
