"""Seller affiliation (recipient) registration."""

from libs.common.logging import get_logger
from services.payments_service.models import AccountGateway
from services.payments_service.pagarme_client import PagarmeClient
from services.payments_service.schemas import AffiliationCreate
from services.payments_service.services.affiliation_store import AffiliationStore
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class AffiliationAlreadyExists(Exception):
    def __init__(self, account: AccountGateway):
        self.account = account
        super().__init__(f"User {account.user_id} already has a gateway account")


async def register_affiliation(
    db: AsyncSession,
    user_id: str,
    registration: AffiliationCreate,
    client: PagarmeClient,
) -> AccountGateway:
    """
    Create the gateway recipient for ``user_id`` and store it as pending.

    The account only becomes approved when a recipient.updated webhook
    arrives. Raises AffiliationAlreadyExists when the user already has an
    account, and PagarmeError when the gateway rejects the registration.
    """
    store = AffiliationStore(db)

    existing = await store.get_by_user(user_id)
    if existing is not None:
        raise AffiliationAlreadyExists(existing)

    register_information = registration.register_information.model_dump(mode="json")
    recipient = await client.create_recipient(register_information)

    account = await store.create_pending(
        user_id=user_id,
        external_id=recipient.id,
        register_information=register_information,
        raw_response=recipient.raw,
        store_profile_id=registration.store_profile_id,
        professional_profile_id=registration.professional_profile_id,
        payment_gateway=registration.payment_gateway,
    )
    await db.commit()
    await db.refresh(account)

    logger.info(
        f"Gateway account created for user {user_id}",
        extra={"extra_fields": {"external_id": recipient.id}},
    )
    return account
