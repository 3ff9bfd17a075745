"""Сервис передачи заявок формы в Attio: компания -> контакт -> сделка."""

from ..config import Settings
from ..core.exceptions import InputValidationError, IntegrationError, UpstreamFailure
from ..core.fields import get_first_field_value
from ..core.identity import build_identity
from ..core.models import CrmRecordRef, FormSubmission, Identity, PipelineState, RelayResult
from ..integrations.attio import AttioClient
from ..utils.logger import get_logger
from .deal_linker import DealLinker, build_deal_name

logger = get_logger(__name__)


class LeadRelayService:
    """Идемпотентный upsert контакта и компании с привязкой сделки."""

    def __init__(self, settings: Settings, client: AttioClient):
        self.settings = settings
        self.client = client
        self.deal_linker = DealLinker(
            client,
            external_id_attribute=settings.ATTIO_DEAL_EXTERNAL_ID_ATTRIBUTE,
            owner_email=settings.ATTIO_OWNER_EMAIL,
            owner_id=settings.ATTIO_OWNER_ID
        )

    def extract_identity(self, submission: FormSubmission) -> Identity:
        """
        Извлечение контакта из полей формы.

        Raises:
            InputValidationError: Если в форме нет email
        """

        fields = submission.fields
        settings = self.settings

        return build_identity(
            email=get_first_field_value(fields, settings.FORM_EMAIL_LABELS),
            full_name=get_first_field_value(fields, settings.FORM_NAME_LABELS),
            first_name=get_first_field_value(fields, settings.FORM_FIRST_NAME_LABELS),
            last_name=get_first_field_value(fields, settings.FORM_LAST_NAME_LABELS),
            company_name=get_first_field_value(fields, settings.FORM_COMPANY_LABELS),
            website=get_first_field_value(fields, settings.FORM_WEBSITE_LABELS)
        )

    async def relay(self, submission: FormSubmission) -> RelayResult:
        """
        Обработка одной заявки.

        Args:
            submission: Данные ответа на форму

        Returns:
            RelayResult: ID созданных/найденных записей и переходы состояний

        Raises:
            InputValidationError: Нет email (rejected_input)
            IntegrationError: Attio отклонил контакт или сделку
        """

        transitions: list[PipelineState] = []

        def advance(state: PipelineState, **context) -> None:
            transitions.append(state)
            logger.info("Pipeline state changed", state=state.value, **context)

        def fail(state: PipelineState, error: Exception) -> None:
            advance(state, error=str(error), error_type=type(error).__name__)
            error.details["state"] = state.value
            error.details["transitions"] = [item.value for item in transitions]

        try:
            identity = self.extract_identity(submission)
        except InputValidationError as e:
            fail(PipelineState.REJECTED_INPUT, e)
            raise

        advance(
            PipelineState.VALIDATED,
            email=identity.email,
            domain=identity.domain or None,
            external_id=submission.external_id
        )

        # Компания необязательна: ошибка не останавливает обработку
        company_ref = CrmRecordRef()
        if identity.domain:
            try:
                company_ref = await self.client.upsert_company(
                    identity.company_name or None,
                    identity.domain
                )
            except IntegrationError as e:
                logger.warning(
                    "Company upsert failed, falling back to domain link",
                    domain=identity.domain,
                    error=str(e)
                )

            if company_ref.resolved:
                advance(PipelineState.COMPANY_RESOLVED, company_id=company_ref.id)
        else:
            logger.info("No company domain, skipping company upsert")

        try:
            person_ref = await self.client.upsert_person(
                identity.email,
                identity.first_name,
                identity.last_name,
                overwrite_name=identity.has_name
            )
            if not person_ref.resolved:
                raise UpstreamFailure(
                    "Attio returned no person record id",
                    details={"email": identity.email}
                )
        except IntegrationError as e:
            fail(PipelineState.UPSTREAM_PERSON_FAILURE, e)
            raise

        advance(PipelineState.PERSON_RESOLVED, person_id=person_ref.id)

        try:
            deal = await self.deal_linker.create_deal(
                deal_name=build_deal_name(identity),
                stage=self.settings.ATTIO_INITIAL_STAGE_TITLE,
                identity=identity,
                person_ref=person_ref,
                company_ref=company_ref,
                external_id=submission.external_id
            )
        except IntegrationError as e:
            fail(PipelineState.UPSTREAM_DEAL_FAILURE, e)
            raise

        advance(
            PipelineState.DEAL_LINKED,
            deal_id=deal.ref.id,
            deal_created=deal.created
        )

        return RelayResult(
            person_id=person_ref.id,
            company_id=company_ref.id,
            deal_id=deal.ref.id,
            deal_created=deal.created,
            company_link=deal.company_link,
            external_id=submission.external_id,
            transitions=transitions
        )
