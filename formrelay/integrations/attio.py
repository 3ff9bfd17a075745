"""Attio API клиент: upsert контактов и компаний, создание сделок."""

from enum import Enum
from typing import Any, Callable

import httpx

from ..core.exceptions import ConfigurationError, UpstreamFailure, UpstreamSchemaError
from ..core.models import CrmRecordRef
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.attio.com/v2"

# Attio отвечает 400/422 на ошибки валидации формы payload
SCHEMA_ERROR_STATUSES = frozenset({400, 422})


class RecordEncoding(str, Enum):
    """Кодировка значений атрибутов в payload."""
    STRUCTURED = "structured"   # [{"email_address": "..."}]
    PLAIN = "plain"             # ["..."]


# Основная кодировка и одна запасная
ENCODING_ORDER = (RecordEncoding.STRUCTURED, RecordEncoding.PLAIN)

ValuesBuilder = Callable[[RecordEncoding], dict[str, Any]]


def encode_text(value: str, encoding: RecordEncoding) -> Any:
    if encoding is RecordEncoding.STRUCTURED:
        return [{"value": value}]
    return value


def encode_emails(email: str, encoding: RecordEncoding) -> list:
    if encoding is RecordEncoding.STRUCTURED:
        return [{"email_address": email}]
    return [email]


def encode_domains(domain: str, encoding: RecordEncoding) -> list:
    if encoding is RecordEncoding.STRUCTURED:
        return [{"domain": domain}]
    return [domain]


def encode_person_name(first_name: str, last_name: str, encoding: RecordEncoding) -> Any:
    if encoding is RecordEncoding.STRUCTURED:
        return [{
            "first_name": first_name,
            "last_name": last_name,
            "full_name": f"{first_name} {last_name}"
        }]
    # Attio принимает строку вида "Last, First"
    return f"{last_name}, {first_name}"


def encode_status(title: str, encoding: RecordEncoding) -> Any:
    if encoding is RecordEncoding.STRUCTURED:
        return [{"status": title}]
    return title


def encode_owner(
    owner_email: str | None,
    owner_id: str | None,
    encoding: RecordEncoding
) -> Any:
    """Владелец сделки: по email (приоритет) или по ID участника workspace."""

    if owner_email:
        if encoding is RecordEncoding.STRUCTURED:
            return [{
                "referenced_actor_type": "workspace-member",
                "workspace_member_email_address": owner_email
            }]
        return owner_email

    if owner_id:
        return [{
            "referenced_actor_type": "workspace-member",
            "referenced_actor_id": owner_id
        }]

    return None


def encode_record_reference(
    target_object: str,
    record_id: str | None,
    encoding: RecordEncoding,
    match_attribute: str | None = None,
    match_value: str | None = None
) -> list:
    """
    Ссылка на запись: по record_id (сильная) или по естественному ключу (слабая).
    """

    if record_id:
        return [{"target_object": target_object, "target_record_id": record_id}]

    if match_attribute == "email_addresses":
        key_values = encode_emails(match_value, encoding)
    elif match_attribute == "domains":
        key_values = encode_domains(match_value, encoding)
    else:
        raise ValueError(f"Unsupported match attribute: {match_attribute}")

    return [{"target_object": target_object, match_attribute: key_values}]


def extract_record_id(record: dict[str, Any] | None) -> str | None:
    """ID записи из ответа Attio ({"id": {"record_id": ...}} или строка)."""

    if not isinstance(record, dict):
        return None

    record_id = record.get("id")
    if isinstance(record_id, dict):
        return record_id.get("record_id") or record_id.get("id")
    if isinstance(record_id, str) and record_id:
        return record_id
    return None


class AttioClient:
    """Клиент для работы с Attio API v2."""

    def __init__(
        self,
        api_token: str | None,
        base_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        if not api_token:
            raise ConfigurationError("ATTIO_TOKEN is not configured")

        self.client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
                "Accept": "application/json"
            }
        )

        logger.debug("Attio client initialized", base_url=base_url)

    async def close(self) -> None:
        """Закрытие HTTP клиента."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Низкоуровневый вызов Attio.

        Raises:
            UpstreamSchemaError: Attio отклонил форму payload (400/422)
            UpstreamFailure: Любая другая ошибка (auth, 429, 5xx, сеть)
        """

        try:
            response = await self.client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(
                "Attio request failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamFailure(
                f"Attio {path} request failed: {e}",
                details={"path": path, "error_type": type(e).__name__}
            ) from e

        if response.is_error:
            try:
                error_body = response.json()
            except ValueError:
                error_body = {"raw": response.text[:500]}

            logger.error(
                "Attio API error",
                method=method,
                path=path,
                status_code=response.status_code,
                response_body=error_body
            )

            details = {
                "path": path,
                "status_code": response.status_code,
                "response": error_body
            }
            message = f"Attio {path} failed with status {response.status_code}"

            if response.status_code in SCHEMA_ERROR_STATUSES:
                raise UpstreamSchemaError(message, details=details)
            raise UpstreamFailure(message, details=details)

        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFailure(
                f"Attio {path} returned non-JSON response",
                details={"path": path, "status_code": response.status_code}
            ) from e

        if not isinstance(data, dict):
            logger.error(
                "Attio returned unexpected response body",
                path=path,
                body_type=type(data).__name__
            )
            raise UpstreamFailure(
                f"Attio {path} returned {type(data).__name__} instead of an object",
                details={"path": path, "status_code": response.status_code}
            )

        return data

    async def _write_with_fallback(
        self,
        operation: str,
        method: str,
        path: str,
        build_values: ValuesBuilder,
        params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Запись с одной повторной попыткой в запасной кодировке.

        Повтор только при UpstreamSchemaError, остальные ошибки пробрасываются сразу.
        """

        last_error: UpstreamSchemaError | None = None

        for encoding in ENCODING_ORDER:
            payload = {"data": {"values": build_values(encoding)}}
            try:
                return await self._request(method, path, params=params, json=payload)
            except UpstreamSchemaError as e:
                last_error = e
                logger.warning(
                    "Attio rejected payload shape",
                    operation=operation,
                    encoding=encoding.value,
                    status_code=e.details.get("status_code")
                )

        raise UpstreamFailure(
            f"Attio {operation} rejected all payload encodings",
            details=last_error.details
        ) from last_error

    async def find_record(
        self,
        object_slug: str,
        attribute: str,
        value: str
    ) -> CrmRecordRef | None:
        """Поиск записи по естественному ключу (email, домен, внешний ID)."""

        data = await self._request(
            "POST",
            f"/objects/{object_slug}/records/query",
            json={"filter": {attribute: value}, "limit": 1}
        )

        records = data.get("data") or []
        if not isinstance(records, list) or not records:
            return None

        return CrmRecordRef(id=extract_record_id(records[0]))

    async def upsert_company(
        self,
        name: str | None,
        domain: str,
        default_name: str | None = None
    ) -> CrmRecordRef:
        """
        Create-or-update компании по домену.

        Название перезаписывается только если оно пришло из формы. Без него
        существующая компания переиспользуется как есть, а новая создается
        с default_name (по умолчанию - домен).

        Args:
            name: Название компании из формы или None
            domain: Домен (уникальный ключ)
            default_name: Название для новой компании

        Returns:
            CrmRecordRef: Ссылка на компанию
        """

        logger.debug("Upserting company", domain=domain, has_name=bool(name))

        if not name:
            existing = await self.find_record("companies", "domains", domain)
            if existing is not None and existing.resolved:
                logger.info("Existing company reused", domain=domain, company_id=existing.id)
                return existing
            name = default_name or domain

        data = await self._write_with_fallback(
            "upsert_company",
            "PUT",
            "/objects/companies/records",
            lambda encoding: {
                "name": encode_text(name, encoding),
                "domains": encode_domains(domain, encoding)
            },
            params={"matching_attribute": "domains"}
        )

        ref = CrmRecordRef(id=extract_record_id(data.get("data")))
        logger.info("Company upserted", domain=domain, company_id=ref.id)
        return ref

    async def upsert_person(
        self,
        email: str,
        first_name: str,
        last_name: str,
        overwrite_name: bool = True
    ) -> CrmRecordRef:
        """
        Create-or-update контакта по email.

        При overwrite_name=False (имя в форме не указано) существующий контакт
        не трогается, а first_name/last_name пишутся только при создании.

        Returns:
            CrmRecordRef: Ссылка на контакт
        """

        logger.debug("Upserting person", email=email, overwrite_name=overwrite_name)

        if not overwrite_name:
            existing = await self.find_record("people", "email_addresses", email)
            if existing is not None and existing.resolved:
                logger.info("Existing person reused", email=email, person_id=existing.id)
                return existing

        data = await self._write_with_fallback(
            "upsert_person",
            "PUT",
            "/objects/people/records",
            lambda encoding: {
                "email_addresses": encode_emails(email, encoding),
                "name": encode_person_name(first_name, last_name, encoding)
            },
            params={"matching_attribute": "email_addresses"}
        )

        ref = CrmRecordRef(id=extract_record_id(data.get("data")))
        logger.info("Person upserted", email=email, person_id=ref.id)
        return ref

    async def find_deal_by_external_id(
        self,
        attribute: str,
        external_id: str
    ) -> CrmRecordRef | None:
        """Поиск сделки по внешнему ID заявки."""
        return await self.find_record("deals", attribute, external_id)

    async def create_deal(self, build_values: ValuesBuilder) -> CrmRecordRef:
        """Создание сделки. Значения собираются под каждую кодировку."""

        data = await self._write_with_fallback(
            "create_deal",
            "POST",
            "/objects/deals/records",
            build_values
        )

        ref = CrmRecordRef(id=extract_record_id(data.get("data")))
        logger.info("Deal created", deal_id=ref.id)
        return ref
