import re
import uuid
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from services.payments_service.models import AffiliationStatus, PaymentGatewayType

_NON_DIGIT = re.compile(r"\D")


def _only_digits(value: str) -> str:
    return _NON_DIGIT.sub("", value or "")


# ============================================================================
# Registration (KYC) Schemas
# ============================================================================


class PhoneNumber(BaseModel):
    ddd: str = Field(min_length=2, max_length=2)
    number: str = Field(min_length=8, max_length=9)
    type: Literal["mobile", "landline"] = "mobile"


class RegistrationAddress(BaseModel):
    street: str = Field(min_length=2)
    street_number: str = Field(min_length=1)
    neighborhood: str = Field(min_length=2)
    city: str = Field(min_length=2)
    state: str = Field(min_length=2, max_length=2)
    zip_code: str
    complementary: Optional[str] = None
    reference_point: Optional[str] = None

    @field_validator("street", "street_number", "neighborhood", "city")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("zip_code")
    @classmethod
    def validate_zip_code(cls, v: str) -> str:
        digits = _only_digits(v)
        if len(digits) != 8:
            raise ValueError("CEP must have 8 digits")
        return digits


class BankAccount(BaseModel):
    holder_name: str = Field(min_length=2)
    holder_type: Literal["individual", "company"] = "individual"
    holder_document: str = Field(min_length=1)
    bank: str = Field(min_length=3)
    branch_number: str = Field(min_length=3)
    branch_check_digit: Optional[str] = None
    account_number: str = Field(min_length=3)
    account_check_digit: str = Field(min_length=1)
    type: Literal["checking", "savings"] = "checking"


class _RegistrationBase(BaseModel):
    email: EmailStr
    document: str
    name: str = Field(min_length=2)
    mother_name: str = Field(min_length=2)
    birthdate: date
    monthly_income: int = Field(gt=0)
    professional_occupation: str = Field(min_length=2)
    phone_numbers: list[PhoneNumber] = Field(min_length=1)
    address: RegistrationAddress
    default_bank_account: BankAccount
    site_url: Optional[str] = None

    @field_validator("name", "mother_name", "professional_occupation")
    @classmethod
    def strip_names(cls, v: str) -> str:
        stripped = v.strip()
        if len(stripped) < 2:
            raise ValueError("must have at least 2 characters")
        return stripped

    @field_validator("birthdate")
    @classmethod
    def validate_age(cls, v: date) -> date:
        today = date.today()
        age = today.year - v.year - ((today.month, today.day) < (v.month, v.day))
        if age < 18:
            raise ValueError("minimum age is 18")
        if age > 100:
            raise ValueError("invalid birthdate")
        return v


class IndividualRegistration(_RegistrationBase):
    type: Literal["individual"] = "individual"

    @field_validator("document")
    @classmethod
    def validate_cpf(cls, v: str) -> str:
        digits = _only_digits(v)
        if len(digits) != 11:
            raise ValueError("CPF must have 11 digits")
        return digits


class CorporationRegistration(_RegistrationBase):
    type: Literal["corporation"]
    company_name: str = Field(min_length=2)
    trading_name: str = Field(min_length=2)
    annual_revenue: int = Field(gt=0)

    @field_validator("document")
    @classmethod
    def validate_cnpj(cls, v: str) -> str:
        digits = _only_digits(v)
        if len(digits) != 14:
            raise ValueError("CNPJ must have 14 digits")
        return digits


RegisterInformation = Annotated[
    Union[IndividualRegistration, CorporationRegistration],
    Field(discriminator="type"),
]


class AffiliationCreate(BaseModel):
    payment_gateway: PaymentGatewayType = PaymentGatewayType.PAGARME
    store_profile_id: Optional[uuid.UUID] = None
    professional_profile_id: Optional[uuid.UUID] = None
    register_information: RegisterInformation


# ============================================================================
# Affiliation Responses
# ============================================================================


class AccountGatewayResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    payment_gateway: PaymentGatewayType
    external_id: str
    status: AffiliationStatus
    store_profile_id: Optional[uuid.UUID] = None
    professional_profile_id: Optional[uuid.UUID] = None
    affiliation_url: Optional[str] = None
    last_webhook_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SellerGateResponse(BaseModel):
    has_account: bool
    can_sell: bool
    needs_kyc: bool
    status: Optional[AffiliationStatus] = None
    affiliation_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Webhook / Admin Schemas
# ============================================================================


class WebhookAck(BaseModel):
    received: bool = True


class SimulateEventRequest(BaseModel):
    """Synthetic recipient.updated event, for testing the KYC flow."""

    external_id: str = Field(min_length=1)
    status: str = Field(min_length=1)  # gateway status, e.g. "active"
    affiliation_url: Optional[str] = None
    event_id: Optional[str] = None


class SimulateEventResponse(BaseModel):
    result: str
    account: Optional[AccountGatewayResponse] = None


class WebhookEventResponse(BaseModel):
    id: uuid.UUID
    event_id: Optional[str] = None
    event_type: str
    external_id: str
    external_status: Optional[str] = None
    mapped_status: AffiliationStatus
    received_at: datetime

    model_config = ConfigDict(from_attributes=True)
