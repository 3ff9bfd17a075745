"""Создание сделки и привязка к контакту и компании."""

from typing import Any

from ..core.exceptions import UpstreamSchemaError
from ..core.models import CrmRecordRef, DealLink, Identity, LinkKind
from ..integrations.attio import (
    AttioClient,
    RecordEncoding,
    encode_owner,
    encode_record_reference,
    encode_status,
    encode_text,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEAL_NAME_PREFIX = "Inbound — "


def build_deal_name(identity: Identity) -> str:
    """Название сделки: Inbound — имя или email, плюс " @ компания" если есть."""

    name = f"{DEAL_NAME_PREFIX}{identity.display_name}"
    company_display = identity.company_name or identity.domain
    if company_display:
        name = f"{name} @ {company_display}"
    return name


class DealLinker:
    """Создает сделку, предпочитая связи по ID и откатываясь на естественные ключи."""

    def __init__(
        self,
        client: AttioClient,
        external_id_attribute: str = "external_source_id",
        owner_email: str | None = None,
        owner_id: str | None = None
    ):
        self.client = client
        self.external_id_attribute = external_id_attribute
        self.owner_email = owner_email
        self.owner_id = owner_id

    async def create_deal(
        self,
        deal_name: str,
        stage: str,
        identity: Identity,
        person_ref: CrmRecordRef,
        company_ref: CrmRecordRef,
        external_id: str | None = None
    ) -> DealLink:
        """
        Создание сделки (или возврат существующей по external_id).

        Args:
            deal_name: Название сделки
            stage: Название стадии ("Prospect")
            identity: Контакт (естественные ключи для слабых связей)
            person_ref: Ссылка на контакт
            company_ref: Ссылка на компанию (id может быть None)
            external_id: ID ответа формы для дедупликации

        Returns:
            DealLink: Ссылка на сделку и способ привязки
        """

        person_link = LinkKind.ID if person_ref.resolved else LinkKind.EMAIL

        company_link = None
        if company_ref.resolved:
            company_link = LinkKind.ID
        elif identity.domain:
            company_link = LinkKind.DOMAIN

        write_external_id = bool(external_id)

        if external_id:
            try:
                existing = await self.client.find_deal_by_external_id(
                    self.external_id_attribute, external_id
                )
            except UpstreamSchemaError as e:
                # Атрибута нет в workspace - работаем без дедупликации
                logger.warning(
                    "Deal deduplication unavailable",
                    attribute=self.external_id_attribute,
                    status_code=e.details.get("status_code")
                )
                write_external_id = False
                existing = None

            if existing is not None:
                logger.info(
                    "Deal already exists for external id",
                    external_id=external_id,
                    deal_id=existing.id
                )
                return DealLink(
                    ref=existing,
                    created=False,
                    person_link=person_link,
                    company_link=company_link
                )

        def build_values(encoding: RecordEncoding) -> dict[str, Any]:
            values = {
                "name": encode_text(deal_name, encoding),
                "stage": encode_status(stage, encoding),
                "associated_people": encode_record_reference(
                    "people", person_ref.id, encoding,
                    match_attribute="email_addresses", match_value=identity.email
                )
            }

            if company_link is not None:
                values["associated_company"] = encode_record_reference(
                    "companies", company_ref.id, encoding,
                    match_attribute="domains", match_value=identity.domain
                )

            owner = encode_owner(self.owner_email, self.owner_id, encoding)
            if owner is not None:
                values["owner"] = owner

            if write_external_id:
                values[self.external_id_attribute] = encode_text(external_id, encoding)

            return values

        ref = await self.client.create_deal(build_values)

        logger.info(
            "Deal linked",
            deal_id=ref.id,
            person_link=person_link.value,
            company_link=company_link.value if company_link else None
        )

        return DealLink(
            ref=ref,
            created=True,
            person_link=person_link,
            company_link=company_link
        )
