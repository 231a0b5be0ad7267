"""Webhook request/response and parsed payload models."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

from pydantic import BaseModel, Field

from relaykit.core.errors import MalformedPayload
from relaykit.models.enums import MessageStatus


class WebhookRequest(BaseModel):
    """A raw inbound HTTP callback, as received by the web layer.

    Attributes:
        url: The full URL the vendor called (needed for Twilio signatures).
        headers: Request headers. Lookup through ``header()`` is
            case-insensitive.
        body: Raw request body bytes.
    """

    url: str = ""
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def form_pairs(self) -> list[tuple[str, str]]:
        """Decode an ``application/x-www-form-urlencoded`` body, keeping repeated keys."""
        try:
            text = self.body.decode()
        except UnicodeDecodeError as exc:
            raise MalformedPayload("Body is not valid UTF-8") from exc
        return parse_qsl(text, keep_blank_values=True)

    def form(self) -> dict[str, str]:
        """Decode a form body; for repeated keys the last value wins."""
        return dict(self.form_pairs())

    def json(self) -> dict[str, Any]:
        """Decode a JSON object body."""
        try:
            data = json.loads(self.body or b"{}")
        except ValueError as exc:
            raise MalformedPayload(f"Invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedPayload("JSON body must be an object")
        return data


class WebhookResponse(BaseModel):
    """What the web layer should send back to the vendor."""

    status_code: int = 200
    body: str = "ok"
    content_type: str = "text/plain"

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class InboundPayload(BaseModel):
    """Vendor-neutral view of an inbound message webhook."""

    from_number: str
    to_number: str
    body: str = ""
    provider_message_id: str
    media_urls: list[str] = Field(default_factory=list)


class StatusPayload(BaseModel):
    """Vendor-neutral view of a delivery-status webhook.

    ``raw_status`` keeps the vendor's own vocabulary; ``status`` is already
    mapped (unknown strings become ``failed``).
    """

    provider_message_id: str
    status: MessageStatus
    raw_status: str = ""
    error_code: str | None = None
    error_message: str | None = None
