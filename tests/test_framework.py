"""Tests for the RelayKit facade."""

from __future__ import annotations

import pytest

from relaykit.config import RelayKitSettings
from relaykit.core.errors import AttachmentFailed, UnknownProviderError
from relaykit.core.framework import RelayKit
from relaykit.models.enums import MessageStatus
from relaykit.models.number import NumberSearchCriteria
from relaykit.providers.mock import MockProvider
from relaykit.providers.telnyx import TelnyxProvider
from relaykit.providers.twilio import TwilioProvider
from relaykit.store.memory import InMemoryStore
from tests.conftest import ACCOUNT_ID, ADMIN_ID, FAST_RETRY


class TestRegistration:
    def test_defaults_to_memory_store(self) -> None:
        kit = RelayKit()
        assert isinstance(kit.store, InMemoryStore)
        assert kit.providers == []

    def test_register_and_get(self) -> None:
        mock = MockProvider()
        kit = RelayKit(providers=[mock])
        assert kit.providers == ["mock"]
        assert kit.get_provider("mock") is mock

    def test_register_replaces(self) -> None:
        first, second = MockProvider(), MockProvider()
        kit = RelayKit(providers=[first])
        kit.register_provider(second)
        assert kit.get_provider("mock") is second

    async def test_provider_registered_later_is_routed(self) -> None:
        kit = RelayKit()
        mock = MockProvider()
        kit.register_provider(mock)
        response = await kit.handle_inbound(
            "mock", mock.inbound_request({"from": "+15551234567", "to": "+14155550100", "id": "x"})
        )
        assert response.status_code == 200

    def test_unknown_provider(self) -> None:
        with pytest.raises(UnknownProviderError):
            RelayKit().get_provider("nope")


class TestFromSettings:
    async def test_builds_configured_vendors(self) -> None:
        settings = RelayKitSettings(
            _env_file=None,
            twilio_account_sid="AC_test",
            twilio_auth_token="tok",
            telnyx_api_key="KEY",
            default_region="US",
        )
        kit = await RelayKit.from_settings(settings)
        try:
            assert kit.providers == ["telnyx", "twilio"]
            assert isinstance(kit.get_provider("twilio"), TwilioProvider)
            assert isinstance(kit.get_provider("telnyx"), TelnyxProvider)
            assert isinstance(kit.store, InMemoryStore)
        finally:
            await kit.close()

    async def test_no_vendors(self) -> None:
        kit = await RelayKit.from_settings(RelayKitSettings(_env_file=None))
        assert kit.providers == []


class TestLifecycle:
    async def test_context_manager_closes_providers(self) -> None:
        mock = MockProvider()
        async with RelayKit(providers=[mock]):
            pass
        assert mock.closed is True


class TestEndToEnd:
    async def test_provision_receive_send_and_deliver(
        self, kit: RelayKit, store: InMemoryStore, mock_provider: MockProvider, account: str
    ) -> None:
        criteria = NumberSearchCriteria(country="US", prefix="415")
        candidates = await kit.search_numbers(ADMIN_ID, account, "mock", criteria)
        owned = await kit.purchase_number(ADMIN_ID, account, "mock", candidates[0])
        assert owned.phone_number.startswith("+1415")

        inbound = await kit.handle_inbound(
            "mock",
            mock_provider.inbound_request(
                {"from": "+15551234567", "to": owned.phone_number, "body": "hi", "id": "in-1"}
            ),
        )
        assert inbound.status_code == 200
        received = await store.get_message_by_provider_id("mock", "in-1")
        assert received is not None
        assert received.account_id == ACCOUNT_ID
        assert received.status == MessageStatus.RECEIVED

        sent = await kit.send_message(account, "+15551234567", "hello back")
        assert sent.from_number == owned.phone_number
        assert sent.status == MessageStatus.SENT

    async def test_attach_retry_through_facade(
        self, store: InMemoryStore, mock_provider: MockProvider, account: str
    ) -> None:
        kit = RelayKit(store=store, providers=[mock_provider], retry_policy=FAST_RETRY)
        mock_provider.attach_failures = 1
        with pytest.raises(AttachmentFailed) as exc_info:
            await kit.provision_number(
                ADMIN_ID, account, "mock", NumberSearchCriteria(country="US", prefix="415")
            )
        number = exc_info.value.owned_number.phone_number

        attached = await kit.retry_attachment(number, caller_id=ADMIN_ID, account_id=account)

        assert attached.attached is True
        assert len(mock_provider.purchased) == 1
