"""Outbound SMS sending."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from relaykit.core._helpers import resolve_adapter
from relaykit.core.errors import (
    InvalidInput,
    ProviderUnavailable,
    RecipientOptedOut,
    SendRejected,
)
from relaykit.core.keywords import ComplianceKeyword
from relaykit.models.enums import MessageDirection, MessageStatus
from relaykit.models.message import Message
from relaykit.models.number import OwnedNumber
from relaykit.phone import normalize_phone

if TYPE_CHECKING:
    from relaykit.providers.base import ProviderAdapter
    from relaykit.store.base import MessageStore

logger = logging.getLogger("relaykit.outbound")


class MessageSender:
    """Sends SMS from an account's own number and records the result."""

    def __init__(
        self,
        store: MessageStore,
        adapters: Mapping[str, ProviderAdapter],
        default_region: str = "US",
    ) -> None:
        self._store = store
        self._adapters = adapters
        self._default_region = default_region

    async def _sender_number(self, account_id: str, provider: str | None) -> OwnedNumber:
        for number in await self._store.list_owned_numbers(account_id):
            if not (number.attached and number.capabilities.sms):
                continue
            if provider is None or number.provider == provider:
                return number
        where = f" from {provider}" if provider else ""
        raise InvalidInput(f"Account {account_id} has no attached SMS number{where}")

    async def send(
        self,
        account_id: str,
        to: str,
        body: str,
        provider: str | None = None,
    ) -> Message:
        """Send *body* to *to* and return the stored message.

        The message is stored as ``queued`` before the vendor is called and
        moved to ``sent`` once the vendor id is known.

        Raises:
            InvalidPhoneNumber: *to* cannot be normalized.
            InvalidInput: Empty body, or the account has no usable number.
            RecipientOptedOut: The recipient's latest keyword for this account
                was STOP; nothing is stored or sent.
            SendRejected: The vendor refused the message; it is marked failed.
            ProviderUnavailable: Transport fault; the message stays queued.
        """
        to_number = normalize_phone(to, self._default_region)
        if not body or not body.strip():
            raise InvalidInput("Message body must not be empty")

        if await self._store.get_opt_out_keyword(account_id, to_number) == ComplianceKeyword.STOP:
            logger.info("Not sending to %s: opted out of account %s", to_number, account_id)
            raise RecipientOptedOut(account_id, to_number)

        sender = await self._sender_number(account_id, provider)
        adapter = resolve_adapter(self._adapters, sender.provider)

        message = Message(
            account_id=account_id,
            provider=sender.provider,
            direction=MessageDirection.OUTBOUND,
            from_number=sender.phone_number,
            to_number=to_number,
            body=body,
            status=MessageStatus.QUEUED,
        )
        await self._store.insert_message(message)

        try:
            provider_message_id = await adapter.send_message(sender.phone_number, to_number, body)
        except SendRejected as exc:
            logger.warning("Send %s rejected by %s: %s", message.id, exc.provider, exc.reason)
            await self._store.record_send_result(
                message.id, MessageStatus.FAILED, error_message=exc.reason
            )
            raise
        except ProviderUnavailable:
            logger.warning("Send %s left queued: %s unavailable", message.id, sender.provider)
            raise

        await self._store.record_send_result(
            message.id, MessageStatus.SENT, provider_message_id=provider_message_id
        )
        logger.info(
            "Sent message %s via %s",
            message.id,
            sender.provider,
            extra={"provider_message_id": provider_message_id},
        )
        stored = await self._store.get_message(message.id)
        return stored or message.model_copy(
            update={"status": MessageStatus.SENT, "provider_message_id": provider_message_id}
        )
