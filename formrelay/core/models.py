from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


class PipelineState(str, Enum):
    """Состояния обработки одной заявки."""
    VALIDATED = "validated"
    COMPANY_RESOLVED = "company_resolved"
    PERSON_RESOLVED = "person_resolved"
    DEAL_LINKED = "deal_linked"
    RESPONDED = "responded"

    # Терминальные ошибки
    REJECTED_INPUT = "rejected_input"
    UPSTREAM_PERSON_FAILURE = "upstream_person_failure"
    UPSTREAM_DEAL_FAILURE = "upstream_deal_failure"


class LinkKind(str, Enum):
    """Способ связи сделки с записью."""
    ID = "id"            # Сильная связь по record_id
    EMAIL = "email"      # Слабая связь по email
    DOMAIN = "domain"    # Слабая связь по домену


class FieldOption(BaseModel):
    """Вариант ответа для полей выбора Tally."""

    id: str = Field(..., description="ID варианта")
    text: str = Field(default="", description="Текст варианта")


class FormField(BaseModel):
    """Поле отправленной формы."""

    model_config = ConfigDict(extra="ignore")

    label: str | None = Field(default=None, description="Метка поля")
    value: Any = Field(default=None, description="Значение (строка или список)")
    key: str | None = Field(default=None, description="Ключ поля Tally")
    type: str | None = Field(default=None, description="Тип поля Tally")
    options: list[FieldOption] = Field(default_factory=list, description="Варианты выбора")

    @computed_field
    @property
    def display_value(self) -> str | list[str]:
        """Значение с заменой ID вариантов на их текст."""
        option_texts = {option.id: option.text for option in self.options}

        if isinstance(self.value, list):
            return [
                option_texts.get(str(item), str(item))
                for item in self.value
                if item is not None
            ]

        if self.value is None:
            return ""

        text = str(self.value)
        return option_texts.get(text, text)


class FormSubmission(BaseModel):
    """Данные ответа на форму (поле data вебхука)."""

    model_config = ConfigDict(extra="ignore")

    fields: list[FormField] = Field(..., description="Поля формы в порядке отправки")
    response_id: str | None = Field(default=None, alias="responseId")
    submission_id: str | None = Field(default=None, alias="submissionId")
    form_id: str | None = Field(default=None, alias="formId")
    form_name: str | None = Field(default=None, alias="formName")

    @computed_field
    @property
    def external_id(self) -> str | None:
        """Стабильный ID заявки для дедупликации сделок."""
        return self.response_id or self.submission_id


class TallyWebhookPayload(BaseModel):
    """Payload вебхука от Tally."""

    model_config = ConfigDict(extra="ignore")

    event_id: str | None = Field(default=None, alias="eventId")
    event_type: str | None = Field(default=None, alias="eventType")
    data: FormSubmission = Field(..., description="Данные ответа")


class Identity(BaseModel):
    """Нормализованные данные контакта."""

    full_name: str = Field(default="", description="Полное имя как в форме")
    first_name: str = Field(..., description="Имя")
    last_name: str = Field(..., description="Фамилия")
    email: str = Field(..., description="Email (нижний регистр)")
    domain: str = Field(default="", description="Домен компании или пустая строка")
    company_name: str = Field(default="", description="Название компании из формы")

    @computed_field
    @property
    def display_name(self) -> str:
        """Имя для названия сделки."""
        return self.full_name or self.email

    @property
    def has_name(self) -> bool:
        """Имя указано в форме (а не подставлен NAME_PLACEHOLDER)."""
        return bool(self.full_name)


class CrmRecordRef(BaseModel):
    """Ссылка на запись Attio в рамках одного запроса."""

    id: str | None = Field(default=None, description="record_id или None")

    @property
    def resolved(self) -> bool:
        return bool(self.id)


class DealLink(BaseModel):
    """Результат привязки сделки."""

    ref: CrmRecordRef = Field(..., description="Ссылка на сделку")
    created: bool = Field(..., description="False если сделка уже существовала")
    person_link: LinkKind = Field(..., description="Как связан контакт")
    company_link: LinkKind | None = Field(default=None, description="Как связана компания")


class RelayResult(BaseModel):
    """Итог обработки заявки."""

    model_config = ConfigDict(populate_by_name=True)

    person_id: str | None = Field(default=None, serialization_alias="personId")
    company_id: str | None = Field(default=None, serialization_alias="companyId")
    deal_id: str | None = Field(default=None, serialization_alias="dealId")
    deal_created: bool = Field(default=False, serialization_alias="dealCreated")
    company_link: LinkKind | None = Field(default=None, serialization_alias="companyLink")
    external_id: str | None = Field(default=None, serialization_alias="externalId")
    transitions: list[PipelineState] = Field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        """Сериализация для JSON ответа."""
        return self.model_dump(mode="json", by_alias=True)
