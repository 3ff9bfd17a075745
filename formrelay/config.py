from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Конфигурация приложения."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Attio интеграция
    ATTIO_TOKEN: str | None = Field(
        default=None, description="Bearer токен Attio API (обязателен для обработки)"
    )
    ATTIO_API_URL: str = Field(
        default="https://api.attio.com/v2", description="Base URL Attio API"
    )
    ATTIO_INITIAL_STAGE_TITLE: str = Field(
        default="Prospect", description="Название начальной стадии сделки"
    )
    ATTIO_OWNER_EMAIL: str | None = Field(
        default=None, description="Email владельца сделки (приоритетный вариант)"
    )
    ATTIO_OWNER_ID: str | None = Field(
        default=None, description="ID владельца сделки (если email не задан)"
    )
    ATTIO_DEAL_EXTERNAL_ID_ATTRIBUTE: str = Field(
        default="external_source_id",
        description="Атрибут сделки для дедупликации по ID ответа формы"
    )

    # Tally webhook
    TALLY_SIGNING_SECRET: str | None = Field(
        default=None, description="Секрет для проверки подписи Tally-Signature"
    )

    # Названия полей формы (поиск без учета регистра, первое совпадение)
    FORM_EMAIL_LABELS: List[str] = Field(
        default=["Email", "Email address", "Work email"],
        description="Метки поля email"
    )
    FORM_NAME_LABELS: List[str] = Field(
        default=["Full name", "Name", "Your name"],
        description="Метки поля полного имени"
    )
    FORM_FIRST_NAME_LABELS: List[str] = Field(
        default=["First name"], description="Метки поля имени"
    )
    FORM_LAST_NAME_LABELS: List[str] = Field(
        default=["Last name"], description="Метки поля фамилии"
    )
    FORM_COMPANY_LABELS: List[str] = Field(
        default=["Company", "Company name", "Organization"],
        description="Метки поля компании"
    )
    FORM_WEBSITE_LABELS: List[str] = Field(
        default=["Website", "Company website", "Website URL"],
        description="Метки поля сайта компании"
    )

    # Логирование
    LOG_LEVEL: str = Field(default="INFO", description="Уровень логирования")
    LOG_FORMAT: str = Field(default="json", description="Формат логов")

    # Debug режим (детали ошибок в ответе)
    DEBUG: bool = Field(default=False, description="Режим отладки")


def get_settings() -> Settings:
    """Получение настроек (читаются заново на каждый запрос)."""
    return Settings()
