"""Shared test fixtures and helpers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from relaykit.core.framework import RelayKit
from relaykit.models.enums import MessageDirection, MessageStatus
from relaykit.models.message import Message
from relaykit.models.number import NumberCapabilities, OwnedNumber
from relaykit.models.policy import RetryPolicy
from relaykit.providers.mock import MockProvider
from relaykit.store.memory import InMemoryStore

ACCOUNT_ID = "acct-1"
ADMIN_ID = "admin-1"
OWNED_NUMBER = "+14155550100"

INVENTORY = [
    "+14155550101",
    "+14155550102",
    "+12125550103",
    "+14155550104",
]

FAST_RETRY = RetryPolicy(max_retries=2, base_delay_seconds=0.001, max_delay_seconds=0.001)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider(inventory=list(INVENTORY))


@pytest.fixture
async def account(store: InMemoryStore) -> str:
    await store.set_account_admin(ACCOUNT_ID, ADMIN_ID)
    return ACCOUNT_ID


@pytest.fixture
async def owned_number(store: InMemoryStore, account: str) -> OwnedNumber:
    """An attached, SMS-capable mock number owned by ``account``."""
    number = make_owned(account_id=account, attached=True, messaging_group_id="mock-group")
    await store.insert_owned_number(number)
    return number


@pytest.fixture
def kit(store: InMemoryStore, mock_provider: MockProvider) -> RelayKit:
    return RelayKit(store=store, providers=[mock_provider], retry_policy=FAST_RETRY)


def make_owned(
    phone_number: str = OWNED_NUMBER,
    account_id: str | None = ACCOUNT_ID,
    provider: str = "mock",
    **kwargs: object,
) -> OwnedNumber:
    return OwnedNumber(
        phone_number=phone_number,
        account_id=account_id,
        provider=provider,
        provider_number_id=kwargs.pop("provider_number_id", "PN-test"),  # type: ignore[arg-type]
        capabilities=kwargs.pop(
            "capabilities", NumberCapabilities(sms=True)
        ),  # type: ignore[arg-type]
        **kwargs,  # type: ignore[arg-type]
    )


def make_message(
    provider_message_id: str | None = "MM1",
    status: MessageStatus = MessageStatus.QUEUED,
    provider: str = "mock",
    **kwargs: object,
) -> Message:
    defaults: dict[str, object] = {
        "account_id": ACCOUNT_ID,
        "direction": MessageDirection.OUTBOUND,
        "from_number": OWNED_NUMBER,
        "to_number": "+15551234567",
        "body": "hello",
    }
    defaults.update(kwargs)
    return Message(
        provider=provider,
        provider_message_id=provider_message_id,
        status=status,
        **defaults,  # type: ignore[arg-type]
    )


def make_inbound(
    provider_message_id: str, keyword: str | None, *, minute: int = 0, **kwargs: object
) -> Message:
    """An inbound message from +15551234567 to the owned number."""
    return make_message(
        provider_message_id,
        status=MessageStatus.RECEIVED,
        direction=MessageDirection.INBOUND,
        from_number="+15551234567",
        to_number=OWNED_NUMBER,
        metadata={"keyword": keyword} if keyword else {},
        created_at=datetime(2026, 1, 1, 12, minute, tzinfo=UTC),
        **kwargs,
    )
