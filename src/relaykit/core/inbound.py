"""Inbound message webhook handling."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from relaykit.core._helpers import forbidden, not_found, resolve_adapter, server_error
from relaykit.core.errors import InvalidInput, StoreError, UnknownProviderError
from relaykit.core.keywords import detect_keyword
from relaykit.models.enums import MessageDirection, MessageStatus
from relaykit.models.message import Message
from relaykit.models.webhook import WebhookRequest, WebhookResponse
from relaykit.phone import normalize_phone

if TYPE_CHECKING:
    from relaykit.providers.base import ProviderAdapter
    from relaykit.store.base import MessageStore

logger = logging.getLogger("relaykit.inbound")


class InboundMessageRouter:
    """Turns vendor "message received" webhooks into stored messages.

    Response policy: 403 only on a bad signature, 5xx only when the store
    fails (so vendors retry), 200 for everything else, including payloads
    that are malformed or addressed to numbers we do not own.
    """

    def __init__(
        self,
        store: MessageStore,
        adapters: Mapping[str, ProviderAdapter],
        default_region: str = "US",
    ) -> None:
        self._store = store
        self._adapters = adapters
        self._default_region = default_region

    async def handle(self, provider: str, request: WebhookRequest) -> WebhookResponse:
        try:
            adapter = resolve_adapter(self._adapters, provider)
        except UnknownProviderError:
            logger.warning("Inbound webhook for unknown provider %s", provider)
            return not_found(provider)

        if not adapter.verify_inbound_signature(request):
            logger.warning(
                "Rejected inbound webhook with invalid signature",
                extra={"provider": provider},
            )
            return forbidden()

        try:
            payload = adapter.parse_inbound_payload(request)
            from_number = normalize_phone(payload.from_number, self._default_region)
            to_number = normalize_phone(payload.to_number, self._default_region)
        except InvalidInput as exc:
            logger.warning("Dropping inbound webhook from %s: %s", provider, exc)
            return adapter.acknowledge()

        try:
            owned = await self._store.get_owned_number_by_number(to_number)
            if owned is None or owned.account_id is None:
                logger.info(
                    "Inbound message %s to unowned number %s ignored",
                    payload.provider_message_id,
                    to_number,
                    extra={"provider": provider},
                )
                return adapter.acknowledge()

            metadata: dict[str, object] = {}
            keyword = detect_keyword(payload.body)
            if keyword is not None:
                metadata["keyword"] = keyword.value
            if payload.media_urls:
                metadata["media_urls"] = payload.media_urls

            message = Message(
                account_id=owned.account_id,
                provider=provider,
                direction=MessageDirection.INBOUND,
                from_number=from_number,
                to_number=to_number,
                body=payload.body,
                status=MessageStatus.RECEIVED,
                provider_message_id=payload.provider_message_id,
                metadata=metadata,
            )
            message_id = await self._store.insert_message(message)
        except StoreError:
            logger.exception("Store failure while recording inbound message")
            return server_error()

        if message_id != message.id:
            logger.debug(
                "Inbound message %s already recorded as %s",
                payload.provider_message_id,
                message_id,
            )
        else:
            logger.info(
                "Recorded inbound message %s for account %s",
                message_id,
                owned.account_id,
                extra={"provider": provider, "keyword": metadata.get("keyword")},
            )
        return adapter.acknowledge()
