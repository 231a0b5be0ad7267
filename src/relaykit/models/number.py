"""Phone number models: owned numbers, search candidates and criteria."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from relaykit.models.enums import NumberType


class NumberCapabilities(BaseModel):
    """What a phone number can do."""

    sms: bool = True
    voice: bool = False
    mms: bool = False

    def satisfies(self, required: NumberCapabilities) -> bool:
        """True if every capability set on *required* is also set here."""
        return (
            (self.sms or not required.sms)
            and (self.voice or not required.voice)
            and (self.mms or not required.mms)
        )


class NumberSearchCriteria(BaseModel):
    """Filter for an available-number search."""

    country: str = "US"
    number_type: NumberType = NumberType.LOCAL
    prefix: str | None = None
    capabilities: NumberCapabilities = Field(default_factory=NumberCapabilities)
    limit: int = Field(default=10, ge=1, le=100)
    page: int = Field(default=1, ge=1)

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        value = value.strip().upper()
        if len(value) != 2 or not value.isalpha():
            raise ValueError("country must be an ISO 3166-1 alpha-2 code")
        return value

    @field_validator("prefix")
    @classmethod
    def _digits_only(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if not value.isdigit():
            raise ValueError("prefix must contain digits only")
        return value


class AvailableNumberCandidate(BaseModel):
    """A purchasable number returned by a vendor search. Never persisted.

    ``availability_id`` may expire on the vendor side; purchasing a stale
    candidate raises ``NumberUnavailable``.
    """

    provider: str
    phone_number: str
    availability_id: str
    region: str | None = None
    capabilities: NumberCapabilities = Field(default_factory=NumberCapabilities)


class OwnedNumber(BaseModel):
    """A purchased number associated with an account."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    phone_number: str
    account_id: str | None = None
    provider: str
    provider_number_id: str
    capabilities: NumberCapabilities = Field(default_factory=NumberCapabilities)
    messaging_group_id: str | None = None
    attached: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
