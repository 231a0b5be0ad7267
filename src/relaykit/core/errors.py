"""Exception hierarchy for RelayKit."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relaykit.models.number import OwnedNumber

__all__ = [
    "AttachmentFailed",
    "Forbidden",
    "InvalidCriteria",
    "InvalidInput",
    "InvalidPhoneNumber",
    "MalformedPayload",
    "NumberAlreadyOwned",
    "NumberUnavailable",
    "ProviderError",
    "ProviderUnavailable",
    "RecipientOptedOut",
    "RelayKitError",
    "SendRejected",
    "StoreError",
    "Unauthorized",
    "UnknownProviderError",
]


class RelayKitError(Exception):
    """Base exception for all RelayKit errors."""


class InvalidInput(RelayKitError):
    """Caller supplied data that cannot be processed. No side effect happened."""


class InvalidPhoneNumber(InvalidInput):
    """A phone number could not be normalized to E.164."""

    def __init__(self, raw: object) -> None:
        super().__init__(f"Invalid phone number: {raw!r}")
        self.raw = raw


class MalformedPayload(InvalidInput):
    """A webhook payload is missing required fields or cannot be decoded."""


class InvalidCriteria(InvalidInput):
    """The vendor rejected a number-search filter combination."""


class RecipientOptedOut(InvalidInput):
    """The recipient replied STOP to this account and has not opted back in."""

    def __init__(self, account_id: str, phone_number: str) -> None:
        super().__init__(f"{phone_number} opted out of messages from account {account_id}")
        self.account_id = account_id
        self.phone_number = phone_number


class Unauthorized(RelayKitError):
    """No caller identity was supplied."""


class Forbidden(RelayKitError):
    """The caller is not the account's designated administrator."""


class UnknownProviderError(RelayKitError):
    """No provider adapter is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown provider: {name}")
        self.name = name


class ProviderError(RelayKitError):
    """Base class for failures reported by (or while talking to) a vendor."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class ProviderUnavailable(ProviderError):
    """Transient transport or vendor fault. Safe to retry with backoff."""


class NumberUnavailable(ProviderError):
    """The selected candidate can no longer be purchased (e.g. it expired)."""


class SendRejected(ProviderError):
    """The vendor refused an outbound message (e.g. unverified sender)."""


class AttachmentFailed(RelayKitError):
    """A number was purchased and recorded but messaging-group attachment failed.

    The number is durably stored with ``attached=False``; retry with
    ``NumberProvisioner.retry_attachment``.
    """

    def __init__(self, owned_number: OwnedNumber, cause: Exception) -> None:
        super().__init__(
            f"Number {owned_number.phone_number} purchased but not attached: {cause}"
        )
        self.owned_number = owned_number
        self.cause = cause


class NumberAlreadyOwned(RelayKitError):
    """The number (or an equivalent number for the account) is already recorded."""


class StoreError(RelayKitError):
    """The persisted store failed. Webhook handlers map this to a 5xx."""
