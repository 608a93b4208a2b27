"""Unit tests for affiliation registration payload validation."""

from datetime import date

import pytest
from pydantic import ValidationError
from services.payments_service.schemas import (
    AffiliationCreate,
    CorporationRegistration,
    IndividualRegistration,
)
from tests.factories import registration_payload


def corporation_payload(**overrides) -> dict:
    payload = registration_payload(
        type="corporation",
        document="12.345.678/0001-95",
        company_name="Loja do João LTDA",
        trading_name="Loja do João",
        annual_revenue=12000000,
    )
    payload.update(overrides)
    return payload


@pytest.mark.unit
def test_individual_registration_normalizes_digits():
    body = AffiliationCreate.model_validate({"register_information": registration_payload()})

    info = body.register_information
    assert isinstance(info, IndividualRegistration)
    assert info.document == "12345678909"
    assert info.address.zip_code == "01310100"


@pytest.mark.unit
def test_corporation_registration_selected_by_type():
    body = AffiliationCreate.model_validate(
        {"register_information": corporation_payload()}
    )

    info = body.register_information
    assert isinstance(info, CorporationRegistration)
    assert info.document == "12345678000195"
    assert info.trading_name == "Loja do João"


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"document": "1234567890"},
        {"email": "not-an-email"},
        {"monthly_income": 0},
        {"phone_numbers": []},
        {"phone_numbers": [{"ddd": "1", "number": "987654321"}]},
        {"name": " "},
        {"type": "partnership"},
    ],
)
def test_invalid_individual_payloads(overrides):
    with pytest.raises(ValidationError):
        AffiliationCreate.model_validate(
            {"register_information": registration_payload(**overrides)}
        )


@pytest.mark.unit
def test_corporation_requires_cnpj_and_company_fields():
    with pytest.raises(ValidationError):
        AffiliationCreate.model_validate(
            {"register_information": corporation_payload(document="12345678909")}
        )

    payload = corporation_payload()
    del payload["company_name"]
    with pytest.raises(ValidationError):
        AffiliationCreate.model_validate({"register_information": payload})


@pytest.mark.unit
def test_invalid_zip_code_rejected():
    address = registration_payload()["address"] | {"zip_code": "0131"}
    with pytest.raises(ValidationError):
        AffiliationCreate.model_validate(
            {"register_information": registration_payload(address=address)}
        )


@pytest.mark.unit
def test_minimum_age_enforced():
    today = date.today()
    too_young = date(today.year - 17, 1, 1).isoformat()
    with pytest.raises(ValidationError):
        AffiliationCreate.model_validate(
            {"register_information": registration_payload(birthdate=too_young)}
        )


@pytest.mark.unit
def test_dump_is_json_ready_for_the_gateway():
    body = AffiliationCreate.model_validate({"register_information": registration_payload()})

    dumped = body.register_information.model_dump(mode="json")

    assert dumped["type"] == "individual"
    assert dumped["birthdate"] == "1990-05-20"
    assert dumped["default_bank_account"]["bank"] == "341"
