"""In-memory implementation of MessageStore."""

from __future__ import annotations

from datetime import UTC, datetime

from relaykit.core.errors import NumberAlreadyOwned
from relaykit.core.keywords import OPT_OUT_KEYWORDS
from relaykit.models.enums import MessageDirection, MessageStatus, can_transition
from relaykit.models.message import Message
from relaykit.models.number import OwnedNumber
from relaykit.store.base import MessageStore

_OPT_KEYWORDS = {k.value for k in OPT_OUT_KEYWORDS}


class InMemoryStore(MessageStore):
    """Dict-based in-memory store for development and testing.

    Check-and-write sequences contain no ``await``, so each operation is
    atomic within a single event loop.
    """

    def __init__(self) -> None:
        self._messages: dict[str, Message] = {}
        self._provider_index: dict[tuple[str, str], str] = {}
        self._numbers: dict[str, OwnedNumber] = {}
        self._admins: dict[str, str] = {}

    # Owned numbers

    async def get_owned_number_by_number(self, phone_number: str) -> OwnedNumber | None:
        number = self._numbers.get(phone_number)
        return number.model_copy() if number is not None else None

    async def insert_owned_number(self, number: OwnedNumber) -> str:
        existing = self._numbers.get(number.phone_number)
        if existing is not None:
            if existing.account_id == number.account_id and existing.provider == number.provider:
                return existing.id
            raise NumberAlreadyOwned(
                f"{number.phone_number} is already recorded for another account"
            )
        self._numbers[number.phone_number] = number.model_copy()
        return number.id

    async def list_owned_numbers(self, account_id: str) -> list[OwnedNumber]:
        owned = [n for n in self._numbers.values() if n.account_id == account_id]
        owned.sort(key=lambda n: n.created_at)
        return [n.model_copy() for n in owned]

    async def list_unattached_numbers(self) -> list[OwnedNumber]:
        return [n.model_copy() for n in self._numbers.values() if not n.attached]

    async def mark_number_attached(
        self,
        phone_number: str,
        messaging_group_id: str | None,
        provider_number_id: str | None = None,
    ) -> OwnedNumber | None:
        number = self._numbers.get(phone_number)
        if number is None:
            return None
        update: dict[str, object] = {"attached": True, "messaging_group_id": messaging_group_id}
        if provider_number_id:
            update["provider_number_id"] = provider_number_id
        number = number.model_copy(update=update)
        self._numbers[phone_number] = number
        return number.model_copy()

    # Messages

    async def insert_message(self, message: Message) -> str:
        if message.provider_message_id is not None:
            key = (message.provider, message.provider_message_id)
            if key in self._provider_index:
                return self._provider_index[key]
            self._provider_index[key] = message.id
        self._messages[message.id] = message.model_copy()
        return message.id

    async def get_message(self, message_id: str) -> Message | None:
        message = self._messages.get(message_id)
        return message.model_copy() if message is not None else None

    async def get_message_by_provider_id(
        self, provider: str, provider_message_id: str
    ) -> Message | None:
        message_id = self._provider_index.get((provider, provider_message_id))
        if message_id is None:
            return None
        return await self.get_message(message_id)

    async def get_opt_out_keyword(self, account_id: str, phone_number: str) -> str | None:
        latest: Message | None = None
        for message in self._messages.values():
            if (
                message.account_id == account_id
                and message.direction == MessageDirection.INBOUND
                and message.from_number == phone_number
                and message.metadata.get("keyword") in _OPT_KEYWORDS
                and (latest is None or message.created_at >= latest.created_at)
            ):
                latest = message
        return latest.metadata["keyword"] if latest is not None else None

    def _apply(
        self,
        message_id: str,
        new_status: MessageStatus,
        update: dict[str, object],
    ) -> bool:
        message = self._messages.get(message_id)
        if message is None or not can_transition(message.status, new_status):
            return False
        update = {k: v for k, v in update.items() if v is not None}
        update["status"] = new_status
        update["updated_at"] = datetime.now(UTC)
        self._messages[message_id] = message.model_copy(update=update)
        return True

    async def update_message_status_if_forward(
        self,
        provider: str,
        provider_message_id: str,
        new_status: MessageStatus,
        *,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        message_id = self._provider_index.get((provider, provider_message_id))
        if message_id is None:
            return False
        return self._apply(
            message_id,
            new_status,
            {"error_code": error_code, "error_message": error_message},
        )

    async def record_send_result(
        self,
        message_id: str,
        new_status: MessageStatus,
        *,
        provider_message_id: str | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        message = self._messages.get(message_id)
        if message is None:
            return False
        applied = self._apply(
            message_id,
            new_status,
            {
                "provider_message_id": provider_message_id,
                "error_code": error_code,
                "error_message": error_message,
            },
        )
        if applied and provider_message_id is not None:
            self._provider_index.setdefault((message.provider, provider_message_id), message_id)
        return applied

    # Accounts

    async def get_account_admin(self, account_id: str) -> str | None:
        return self._admins.get(account_id)

    async def set_account_admin(self, account_id: str, admin_id: str) -> None:
        self._admins[account_id] = admin_id
