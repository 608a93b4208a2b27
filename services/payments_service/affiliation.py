"""Affiliation (KYC) status vocabulary and the seller gate."""

from dataclasses import dataclass
from typing import Optional

from services.payments_service.models import AccountGateway, AffiliationStatus

# Gateway recipient status -> internal affiliation status
_EXTERNAL_STATUS_MAP = {
    "active": AffiliationStatus.APPROVED,
    "rejected": AffiliationStatus.REFUSED,
    "inactive": AffiliationStatus.REFUSED,
}


def map_external_status(external: Optional[str]) -> AffiliationStatus:
    """Map a gateway recipient status to our three-state enum.

    Unknown values (and "pending") map to PENDING.
    """
    if not isinstance(external, str):
        return AffiliationStatus.PENDING
    return _EXTERNAL_STATUS_MAP.get(external, AffiliationStatus.PENDING)


@dataclass(frozen=True)
class SellerGate:
    has_account: bool
    can_sell: bool
    needs_kyc: bool
    status: Optional[AffiliationStatus] = None
    affiliation_url: Optional[str] = None


def evaluate_gate(account: Optional[AccountGateway]) -> SellerGate:
    """Derive the selling permission from an account's current status."""
    if account is None:
        return SellerGate(has_account=False, can_sell=False, needs_kyc=False)

    return SellerGate(
        has_account=True,
        can_sell=account.status == AffiliationStatus.APPROVED,
        needs_kyc=account.status == AffiliationStatus.PENDING,
        status=account.status,
        affiliation_url=account.affiliation_url,
    )


async def can_sell(store, user_id: str) -> SellerGate:
    """Read-only gate used by checkout and listing paths.

    ``store`` is an AffiliationStore bound to the caller's session.
    """
    account = await store.get_by_user(user_id)
    return evaluate_gate(account)
