"""Abstract base class for message and number storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from relaykit.models.enums import MessageStatus
from relaykit.models.message import Message
from relaykit.models.number import OwnedNumber


class MessageStore(ABC):
    """Durable record keeper for messages, owned numbers and account admins.

    Implement this ABC to plug in any storage backend. Every operation must
    be safe to retry: inserts are idempotent on their natural keys and status
    updates are conditional on the current status. The library ships with
    `InMemoryStore` for development and testing and `PostgresStore` for
    production.
    """

    # Owned numbers

    @abstractmethod
    async def get_owned_number_by_number(self, phone_number: str) -> OwnedNumber | None:
        """Get the owned number for an E.164 string, or ``None``.

        Callers must normalize *phone_number* first.
        """
        ...

    @abstractmethod
    async def insert_owned_number(self, number: OwnedNumber) -> str:
        """Persist a purchased number and return its id.

        Re-inserting the same number for the same account and provider
        returns the existing id.

        Raises:
            NumberAlreadyOwned: The number is recorded for another account.
        """
        ...

    @abstractmethod
    async def list_owned_numbers(self, account_id: str) -> list[OwnedNumber]:
        """List the numbers owned by an account, oldest first."""
        ...

    @abstractmethod
    async def list_unattached_numbers(self) -> list[OwnedNumber]:
        """List purchased numbers whose messaging-group attachment is pending."""
        ...

    @abstractmethod
    async def mark_number_attached(
        self,
        phone_number: str,
        messaging_group_id: str | None,
        provider_number_id: str | None = None,
    ) -> OwnedNumber | None:
        """Record a completed attachment. Returns ``None`` for unknown numbers."""
        ...

    # Messages

    @abstractmethod
    async def insert_message(self, message: Message) -> str:
        """Persist a message and return its id.

        A message whose ``(provider, provider_message_id)`` is already stored
        is treated as already applied: the existing id is returned.
        """
        ...

    @abstractmethod
    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by local id."""
        ...

    @abstractmethod
    async def get_message_by_provider_id(
        self, provider: str, provider_message_id: str
    ) -> Message | None:
        """Get a message by its provider-assigned id."""
        ...

    @abstractmethod
    async def get_opt_out_keyword(self, account_id: str, phone_number: str) -> str | None:
        """Return the latest ``stop``/``start`` keyword *phone_number* sent to *account_id*.

        Only inbound messages carrying a ``keyword`` of ``stop`` or ``start``
        in their metadata count. ``None`` means the number never opted out.
        """
        ...

    @abstractmethod
    async def update_message_status_if_forward(
        self,
        provider: str,
        provider_message_id: str,
        new_status: MessageStatus,
        *,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Atomically move a message forward to *new_status*.

        Returns ``True`` only if the update was applied; backward, repeated
        or unknown-message updates return ``False``.
        """
        ...

    @abstractmethod
    async def record_send_result(
        self,
        message_id: str,
        new_status: MessageStatus,
        *,
        provider_message_id: str | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Record the outcome of an outbound send by local id.

        Applies the same forward-only rule as
        ``update_message_status_if_forward``.
        """
        ...

    # Accounts

    @abstractmethod
    async def get_account_admin(self, account_id: str) -> str | None:
        """Return the account's designated administrator identifier."""
        ...

    @abstractmethod
    async def set_account_admin(self, account_id: str, admin_id: str) -> None:
        """Designate the administrator of an account."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses that hold connections."""
