"""Mock provider adapter for testing."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from relaykit.core.errors import (
    MalformedPayload,
    NumberUnavailable,
    ProviderUnavailable,
    SendRejected,
)
from relaykit.models.enums import MessageStatus
from relaykit.models.number import (
    AvailableNumberCandidate,
    NumberCapabilities,
    NumberSearchCriteria,
    OwnedNumber,
)
from relaykit.models.webhook import (
    InboundPayload,
    StatusPayload,
    WebhookRequest,
    WebhookResponse,
)
from relaykit.phone import national_prefix_matches

SIGNATURE_HEADER = "X-Mock-Signature"


class MockProvider:
    """In-memory vendor that records calls for verification in tests.

    Webhook bodies are JSON: inbound ``{"from", "to", "body", "id"}``, status
    ``{"id", "status"}``. A request is signed when its ``X-Mock-Signature``
    header equals ``secret``.

    Failure injection:
        expired: availability ids whose purchase raises ``NumberUnavailable``.
        attach_failures: number of upcoming attach calls that raise
            ``ProviderUnavailable``.
        reject_sends: reason for ``SendRejected`` on every send, if set.
        unavailable: when True, every vendor call raises ``ProviderUnavailable``.
    """

    def __init__(
        self,
        name: str = "mock",
        *,
        inventory: list[str] | None = None,
        secret: str | None = "mock-secret",
        messaging_group_id: str | None = "mock-group",
    ) -> None:
        self._name = name
        self.inventory: list[str] = list(inventory or [])
        self.secret = secret
        self.messaging_group_id = messaging_group_id
        self.expired: set[str] = set()
        self.attach_failures = 0
        self.reject_sends: str | None = None
        self.unavailable = False
        self.purchased: list[OwnedNumber] = []
        self.attached: list[str] = []
        self.sent: list[dict[str, str]] = []
        self.searches: list[NumberSearchCriteria] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    def _check_available(self) -> None:
        if self.unavailable:
            raise ProviderUnavailable(self.name, "mock outage")

    async def search_available_numbers(
        self, criteria: NumberSearchCriteria
    ) -> list[AvailableNumberCandidate]:
        self._check_available()
        self.searches.append(criteria)
        matches = [
            n
            for n in self.inventory
            if national_prefix_matches(n, criteria.country, criteria.prefix)
        ]
        start = (criteria.page - 1) * criteria.limit
        return [
            AvailableNumberCandidate(
                provider=self.name,
                phone_number=number,
                availability_id=f"avail-{number.lstrip('+')}",
                region=criteria.country,
                capabilities=NumberCapabilities(sms=True, voice=True),
            )
            for number in matches[start : start + criteria.limit]
        ]

    async def purchase_number(self, candidate: AvailableNumberCandidate) -> OwnedNumber:
        self._check_available()
        if (
            candidate.availability_id in self.expired
            or candidate.phone_number not in self.inventory
        ):
            raise NumberUnavailable(self.name, f"{candidate.phone_number} is no longer available")
        self.inventory.remove(candidate.phone_number)
        owned = OwnedNumber(
            phone_number=candidate.phone_number,
            provider=self.name,
            provider_number_id=f"PN{uuid4().hex[:16]}",
            capabilities=candidate.capabilities,
        )
        self.purchased.append(owned)
        return owned

    async def attach_to_messaging_group(self, owned: OwnedNumber) -> OwnedNumber:
        self._check_available()
        if self.attach_failures > 0:
            self.attach_failures -= 1
            raise ProviderUnavailable(self.name, "mock attach failure")
        if owned.phone_number not in self.attached:
            self.attached.append(owned.phone_number)
        return owned.model_copy(
            update={"attached": True, "messaging_group_id": self.messaging_group_id}
        )

    async def send_message(self, from_number: str, to_number: str, body: str) -> str:
        self._check_available()
        if self.reject_sends:
            raise SendRejected(self.name, self.reject_sends)
        message_id = f"MM{uuid4().hex}"
        self.sent.append({"id": message_id, "from": from_number, "to": to_number, "body": body})
        return message_id

    def verify_inbound_signature(self, request: WebhookRequest) -> bool:
        if self.secret is None:
            return True
        return request.header(SIGNATURE_HEADER) == self.secret

    def parse_inbound_payload(self, request: WebhookRequest) -> InboundPayload:
        data = request.json()
        try:
            return InboundPayload(
                from_number=data["from"],
                to_number=data["to"],
                body=data.get("body", ""),
                provider_message_id=data["id"],
            )
        except KeyError as exc:
            raise MalformedPayload(f"missing field {exc}") from exc

    def parse_status_payload(self, request: WebhookRequest) -> StatusPayload:
        data = request.json()
        if "id" not in data or "status" not in data:
            raise MalformedPayload("mock status webhook requires id and status")
        raw = str(data["status"])
        try:
            status = MessageStatus(raw)
        except ValueError:
            status = MessageStatus.FAILED
        return StatusPayload(provider_message_id=data["id"], status=status, raw_status=raw)

    def acknowledge(self) -> WebhookResponse:
        return WebhookResponse()

    async def close(self) -> None:
        self.closed = True

    # -- Test helpers --

    def inbound_request(self, payload: dict[str, Any], *, signed: bool = True) -> WebhookRequest:
        """Build a webhook request carrying *payload*, optionally signed."""
        headers = {"Content-Type": "application/json"}
        if signed and self.secret is not None:
            headers[SIGNATURE_HEADER] = self.secret
        return WebhookRequest(
            url=f"https://hooks.example.com/{self.name}",
            headers=headers,
            body=json.dumps(payload).encode(),
        )
