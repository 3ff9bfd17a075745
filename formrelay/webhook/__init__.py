"""Webhook модуль для приема заявок Tally."""

from .app import app, create_app
from .auth import verify_tally_signature
from .handlers import TallyWebhookHandler

__all__ = [
    "app",
    "create_app",
    "TallyWebhookHandler",
    "verify_tally_signature"
]
