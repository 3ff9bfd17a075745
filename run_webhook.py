#!/usr/bin/env python3
"""Скрипт запуска webhook сервера Tally -> Attio."""

import os

import uvicorn

from formrelay.config import get_settings
from formrelay.utils.logger import get_logger

logger = get_logger(__name__)


def main():
    """Запуск uvicorn с приложением webhook."""

    settings = get_settings()
    port = int(os.getenv("PORT", "8000"))

    if not settings.ATTIO_TOKEN:
        logger.warning("ATTIO_TOKEN is not set - webhook requests will fail with 500")

    logger.info("Starting webhook server", port=port, debug=settings.DEBUG)

    uvicorn.run(
        "formrelay.webhook.app:app",
        host="0.0.0.0",
        port=port,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )


if __name__ == "__main__":
    main()
