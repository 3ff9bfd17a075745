"""Кастомные исключения для системы."""


class FormRelayError(Exception):
    """Базовое исключение для всех ошибок системы."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(FormRelayError):
    """Ошибка конфигурации (отсутствует токен или секрет)."""
    status_code = 500


class InputValidationError(FormRelayError):
    """Во входящей заявке нет обязательного поля."""
    status_code = 400


class WebhookAuthError(FormRelayError):
    """Ошибка авторизации вебхука."""
    status_code = 401


class IntegrationError(FormRelayError):
    """Ошибка интеграции с Attio."""
    status_code = 502


class UpstreamSchemaError(IntegrationError):
    """Attio отклонил запрос из-за формы payload."""
    pass


class UpstreamFailure(IntegrationError):
    """Attio отклонил запрос по другой причине (auth, rate limit, 5xx, сеть)."""
    pass
