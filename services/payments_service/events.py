"""Decoding of raw Pagar.me webhook payloads into validated events.

``decode_event`` never raises: it returns either a ``GatewayEvent`` or a
``DecodeFailure`` describing why the payload was rejected.
"""

import json
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

RECIPIENT_UPDATED = "recipient.updated"


class GatewayEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    status: Optional[str] = None
    affiliation_url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_recipient_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class GatewayEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str = Field(..., min_length=1)
    created_at: Optional[str] = None
    data: GatewayEventData

    @field_validator("id", mode="before")
    @classmethod
    def coerce_event_id(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @property
    def is_recipient_update(self) -> bool:
        return self.type == RECIPIENT_UPDATED


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


DecodeResult = Union[GatewayEvent, DecodeFailure]


def decode_event(raw_payload: bytes) -> DecodeResult:
    try:
        document = json.loads(raw_payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return DecodeFailure("Invalid webhook payload")

    if not isinstance(document, dict):
        return DecodeFailure("Invalid event structure")

    try:
        return GatewayEvent.model_validate(document)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        return DecodeFailure(f"Invalid event structure: {fields}")
