"""Tests for the FastAPI surface."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from relaykit.core.framework import RelayKit
from relaykit.models.enums import MessageStatus
from relaykit.providers.mock import MockProvider
from relaykit.store.memory import InMemoryStore
from relaykit.web import create_app
from tests.conftest import ACCOUNT_ID, ADMIN_ID, FAST_RETRY, INVENTORY, make_owned

ADMIN = {"X-Caller-Id": ADMIN_ID}
SIGNED = {"X-Mock-Signature": "mock-secret"}


@pytest.fixture
def web_store() -> InMemoryStore:
    store = InMemoryStore()
    asyncio.run(store.set_account_admin(ACCOUNT_ID, ADMIN_ID))
    return store


@pytest.fixture
def web_mock() -> MockProvider:
    return MockProvider(inventory=list(INVENTORY))


@pytest.fixture
def client(web_store: InMemoryStore, web_mock: MockProvider) -> Iterator[TestClient]:
    kit = RelayKit(store=web_store, providers=[web_mock], retry_policy=FAST_RETRY)
    with TestClient(create_app(kit)) as test_client:
        yield test_client


def _own_number(store: InMemoryStore) -> None:
    asyncio.run(
        store.insert_owned_number(make_owned(attached=True, messaging_group_id="mock-group"))
    )


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "providers": ["mock"]}


def test_close_on_shutdown(web_store: InMemoryStore, web_mock: MockProvider) -> None:
    kit = RelayKit(store=web_store, providers=[web_mock])
    with TestClient(create_app(kit)):
        pass
    assert web_mock.closed is True


class TestWebhooks:
    def test_inbound(self, client: TestClient, web_store: InMemoryStore) -> None:
        _own_number(web_store)
        response = client.post(
            "/webhooks/mock/inbound",
            json={"from": "+15551234567", "to": "+14155550100", "body": "hi", "id": "in-1"},
            headers=SIGNED,
        )
        assert response.status_code == 200
        stored = asyncio.run(web_store.get_message_by_provider_id("mock", "in-1"))
        assert stored is not None
        assert stored.account_id == ACCOUNT_ID

    def test_bad_signature(self, client: TestClient) -> None:
        response = client.post(
            "/webhooks/mock/inbound",
            json={"from": "+15551234567", "to": "+14155550100", "id": "in-1"},
            headers={"X-Mock-Signature": "wrong"},
        )
        assert response.status_code == 403

    def test_unknown_provider(self, client: TestClient) -> None:
        response = client.post("/webhooks/nope/status", json={"id": "x", "status": "sent"})
        assert response.status_code == 404

    def test_status(self, client: TestClient, web_store: InMemoryStore) -> None:
        _own_number(web_store)
        sent = client.post(
            f"/accounts/{ACCOUNT_ID}/messages",
            json={"to": "+15551234567", "body": "hello"},
            headers=ADMIN,
        ).json()

        response = client.post(
            "/webhooks/mock/status",
            json={"id": sent["provider_message_id"], "status": "delivered"},
            headers=SIGNED,
        )

        assert response.status_code == 200
        stored = asyncio.run(web_store.get_message(sent["id"]))
        assert stored is not None
        assert stored.status == MessageStatus.DELIVERED


class TestNumbers:
    def test_search_requires_caller(self, client: TestClient) -> None:
        response = client.get(
            f"/accounts/{ACCOUNT_ID}/numbers/available", params={"provider": "mock"}
        )
        assert response.status_code == 401

    def test_search_rejects_other_caller(self, client: TestClient) -> None:
        response = client.get(
            f"/accounts/{ACCOUNT_ID}/numbers/available",
            params={"provider": "mock"},
            headers={"X-Caller-Id": "intruder"},
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    def test_search(self, client: TestClient) -> None:
        response = client.get(
            f"/accounts/{ACCOUNT_ID}/numbers/available",
            params={"provider": "mock", "prefix": "415"},
            headers=ADMIN,
        )
        assert response.status_code == 200
        numbers = [c["phone_number"] for c in response.json()]
        assert numbers
        assert all(n.startswith("+1415") for n in numbers)

    def test_search_bad_country(self, client: TestClient) -> None:
        response = client.get(
            f"/accounts/{ACCOUNT_ID}/numbers/available",
            params={"provider": "mock", "country": "USA"},
            headers=ADMIN,
        )
        assert response.status_code == 422

    def test_purchase_candidate(self, client: TestClient) -> None:
        candidate = client.get(
            f"/accounts/{ACCOUNT_ID}/numbers/available",
            params={"provider": "mock", "prefix": "415"},
            headers=ADMIN,
        ).json()[0]

        response = client.post(
            f"/accounts/{ACCOUNT_ID}/numbers",
            json={"provider": "mock", "candidate": candidate},
            headers=ADMIN,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["phone_number"] == candidate["phone_number"]
        assert body["attached"] is True

    def test_provision_by_criteria(self, client: TestClient) -> None:
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/numbers",
            json={"provider": "mock", "criteria": {"country": "US", "prefix": "212"}},
            headers=ADMIN,
        )
        assert response.status_code == 201
        assert response.json()["phone_number"] == "+12125550103"

    def test_purchase_needs_candidate_or_criteria(self, client: TestClient) -> None:
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/numbers", json={"provider": "mock"}, headers=ADMIN
        )
        assert response.status_code == 422

    def test_attach_failure_then_retry(self, client: TestClient, web_mock: MockProvider) -> None:
        web_mock.attach_failures = 1
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/numbers",
            json={"provider": "mock", "criteria": {"prefix": "415"}},
            headers=ADMIN,
        )

        assert response.status_code == 202
        body = response.json()
        assert body["error"] == "AttachmentFailed"
        number = body["number"]["phone_number"]
        assert body["number"]["attached"] is False

        retried = client.post(
            f"/accounts/{ACCOUNT_ID}/numbers/{number}/attach", headers=ADMIN
        )

        assert retried.status_code == 200
        assert retried.json()["attached"] is True
        assert len(web_mock.purchased) == 1

    def test_expired_candidate(self, client: TestClient, web_mock: MockProvider) -> None:
        web_mock.expired.add("avail-14155550101")
        candidate = {
            "provider": "mock",
            "phone_number": "+14155550101",
            "availability_id": "avail-14155550101",
        }
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/numbers",
            json={"provider": "mock", "candidate": candidate},
            headers=ADMIN,
        )
        assert response.status_code == 409


class TestMessages:
    def test_send(self, client: TestClient, web_store: InMemoryStore) -> None:
        _own_number(web_store)
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/messages",
            json={"to": "(555) 123-4567", "body": "hello"},
            headers=ADMIN,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "sent"
        assert body["to_number"] == "+15551234567"
        assert body["from_number"] == "+14155550100"

    def test_send_requires_admin(self, client: TestClient, web_store: InMemoryStore) -> None:
        _own_number(web_store)
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/messages",
            json={"to": "+15551234567", "body": "hello"},
        )
        assert response.status_code == 401

    def test_invalid_destination(self, client: TestClient, web_store: InMemoryStore) -> None:
        _own_number(web_store)
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/messages",
            json={"to": "123", "body": "hello"},
            headers=ADMIN,
        )
        assert response.status_code == 422

    def test_provider_outage(
        self, client: TestClient, web_store: InMemoryStore, web_mock: MockProvider
    ) -> None:
        _own_number(web_store)
        web_mock.unavailable = True
        response = client.post(
            f"/accounts/{ACCOUNT_ID}/messages",
            json={"to": "+15551234567", "body": "hello"},
            headers=ADMIN,
        )
        assert response.status_code == 503

    def test_opted_out_recipient(self, client: TestClient, web_store: InMemoryStore) -> None:
        _own_number(web_store)
        client.post(
            "/webhooks/mock/inbound",
            json={"from": "+15551234567", "to": "+14155550100", "body": "stop it", "id": "in-1"},
            headers=SIGNED,
        )

        response = client.post(
            f"/accounts/{ACCOUNT_ID}/messages",
            json={"to": "+15551234567", "body": "hello"},
            headers=ADMIN,
        )

        assert response.status_code == 409
        assert response.json()["error"] == "RecipientOptedOut"
