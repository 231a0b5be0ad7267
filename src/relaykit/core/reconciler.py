"""Delivery-status webhook handling."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from relaykit.core._helpers import forbidden, not_found, resolve_adapter, server_error
from relaykit.core.errors import InvalidInput, StoreError, UnknownProviderError
from relaykit.models.webhook import StatusPayload, WebhookRequest, WebhookResponse

if TYPE_CHECKING:
    from relaykit.providers.base import ProviderAdapter
    from relaykit.store.base import MessageStore

logger = logging.getLogger("relaykit.reconciler")


class StatusReconciler:
    """Applies vendor delivery-status callbacks to stored messages.

    Updates only ever move a message forward (see
    ``relaykit.models.enums.can_transition``) and are applied by the store
    as a single conditional write, so duplicate or reordered callbacks
    converge on the same final status. Unknown message ids are acknowledged
    with 200 to avoid vendor retry storms.
    """

    def __init__(self, store: MessageStore, adapters: Mapping[str, ProviderAdapter]) -> None:
        self._store = store
        self._adapters = adapters

    async def handle(self, provider: str, request: WebhookRequest) -> WebhookResponse:
        try:
            adapter = resolve_adapter(self._adapters, provider)
        except UnknownProviderError:
            logger.warning("Status webhook for unknown provider %s", provider)
            return not_found(provider)

        if not adapter.verify_inbound_signature(request):
            logger.warning(
                "Rejected status webhook with invalid signature",
                extra={"provider": provider},
            )
            return forbidden()

        try:
            payload = adapter.parse_status_payload(request)
        except InvalidInput as exc:
            logger.warning("Dropping status webhook from %s: %s", provider, exc)
            return adapter.acknowledge()

        try:
            await self.reconcile(provider, payload)
        except StoreError:
            logger.exception("Store failure while reconciling status")
            return server_error()
        return adapter.acknowledge()

    async def reconcile(self, provider: str, payload: StatusPayload) -> bool:
        """Apply *payload*; return True if the stored status changed."""
        applied = await self._store.update_message_status_if_forward(
            provider,
            payload.provider_message_id,
            payload.status,
            error_code=payload.error_code,
            error_message=payload.error_message,
        )
        if applied:
            logger.info(
                "Message %s moved to %s",
                payload.provider_message_id,
                payload.status,
                extra={"provider": provider, "raw_status": payload.raw_status},
            )
        else:
            logger.debug(
                "Ignored %s status for message %s (unknown id or not forward)",
                payload.raw_status or payload.status,
                payload.provider_message_id,
                extra={"provider": provider},
            )
        return applied
