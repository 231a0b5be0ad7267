"""Capability interface every telephony provider adapter satisfies."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from relaykit.models.number import (
    AvailableNumberCandidate,
    NumberSearchCriteria,
    OwnedNumber,
)
from relaykit.models.webhook import (
    InboundPayload,
    StatusPayload,
    WebhookRequest,
    WebhookResponse,
)


@runtime_checkable
class ProviderAdapter(Protocol):
    """Uniform capability set over one telephony vendor.

    Adapters are independent classes tagged by ``name``; callers depend on
    this interface only. Transport faults surface as ``ProviderUnavailable``
    and vendor business rejections as ``InvalidCriteria``,
    ``NumberUnavailable`` or ``SendRejected``.
    """

    @property
    def name(self) -> str:
        """Provider tag (e.g. ``"twilio"``, ``"telnyx"``)."""
        ...

    async def search_available_numbers(
        self, criteria: NumberSearchCriteria
    ) -> list[AvailableNumberCandidate]:
        """Search the vendor inventory."""
        ...

    async def purchase_number(self, candidate: AvailableNumberCandidate) -> OwnedNumber:
        """Buy *candidate*. The returned number has no account yet."""
        ...

    async def attach_to_messaging_group(self, owned: OwnedNumber) -> OwnedNumber:
        """Attach a number to the vendor's messaging group. Must be idempotent.

        Returns the number with ``attached=True`` and ``messaging_group_id``
        set. Vendors without the concept return it unchanged but attached.
        """
        ...

    async def send_message(self, from_number: str, to_number: str, body: str) -> str:
        """Send an SMS and return the provider-assigned message id."""
        ...

    def verify_inbound_signature(self, request: WebhookRequest) -> bool:
        """Check that *request* was signed by the vendor.

        Vendors with opaque bearer webhooks have nothing to check and return
        True; do not rely on this as the only authenticity gate for them.
        """
        ...

    def parse_inbound_payload(self, request: WebhookRequest) -> InboundPayload:
        """Raises ``MalformedPayload`` when required fields are absent."""
        ...

    def parse_status_payload(self, request: WebhookRequest) -> StatusPayload:
        """Unknown vendor status strings map to ``failed``."""
        ...

    def acknowledge(self) -> WebhookResponse:
        """The 200 response body the vendor expects."""
        ...

    async def close(self) -> None:
        """Release HTTP connections."""
        ...
