"""Message model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from relaykit.models.enums import MessageDirection, MessageStatus


class Message(BaseModel):
    """A single SMS, inbound or outbound.

    ``(provider, provider_message_id)`` is unique once the provider id is
    known. Until then the message is addressed only by ``id``.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    account_id: str
    provider: str
    direction: MessageDirection
    from_number: str
    to_number: str
    body: str = ""
    status: MessageStatus
    provider_message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)
