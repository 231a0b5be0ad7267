"""RelayKit - central entry point for SMS messaging and number provisioning."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from relaykit.core._helpers import resolve_adapter
from relaykit.core.inbound import InboundMessageRouter
from relaykit.core.outbound import MessageSender
from relaykit.core.provisioning import NumberProvisioner
from relaykit.core.reconciler import StatusReconciler
from relaykit.models.policy import RetryPolicy
from relaykit.store.memory import InMemoryStore

if TYPE_CHECKING:
    from relaykit.config import RelayKitSettings
    from relaykit.models.message import Message
    from relaykit.models.number import (
        AvailableNumberCandidate,
        NumberSearchCriteria,
        OwnedNumber,
    )
    from relaykit.models.webhook import WebhookRequest, WebhookResponse
    from relaykit.providers.base import ProviderAdapter
    from relaykit.store.base import MessageStore

logger = logging.getLogger("relaykit.framework")


class RelayKit:
    """Wires provider adapters and a store into the messaging workflows.

    All state lives in the store; a ``RelayKit`` instance can be shared by
    every request in a process.

    Example:
        kit = RelayKit(store=InMemoryStore(), providers=[TwilioProvider(config)])
        response = await kit.handle_inbound("twilio", request)
    """

    def __init__(
        self,
        store: MessageStore | None = None,
        providers: Iterable[ProviderAdapter] = (),
        *,
        default_region: str = "US",
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._store = store or InMemoryStore()
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in providers:
            self.register_provider(adapter)
        self._default_region = default_region
        self._inbound = InboundMessageRouter(self._store, self._adapters, default_region)
        self._reconciler = StatusReconciler(self._store, self._adapters)
        self._provisioner = NumberProvisioner(
            self._store,
            self._adapters,
            retry_policy=retry_policy,
            default_region=default_region,
        )
        self._sender = MessageSender(self._store, self._adapters, default_region)

    @classmethod
    async def from_settings(cls, settings: RelayKitSettings) -> RelayKit:
        """Build a kit from environment settings.

        Uses ``PostgresStore`` when ``database_dsn`` is set (initializing its
        schema) and registers every vendor whose credentials are present.
        """
        from relaykit.providers.telnyx.provider import TelnyxProvider
        from relaykit.providers.twilio.provider import TwilioProvider

        store: MessageStore
        if settings.database_dsn:
            from relaykit.store.postgres import PostgresStore

            postgres = PostgresStore(settings.database_dsn)
            await postgres.init()
            store = postgres
        else:
            store = InMemoryStore()

        providers: list[ProviderAdapter] = []
        if (twilio := settings.twilio_config()) is not None:
            providers.append(TwilioProvider(twilio))
        if (telnyx := settings.telnyx_config()) is not None:
            providers.append(TelnyxProvider(telnyx))
        if not providers:
            logger.warning("No provider credentials configured")

        return cls(
            store=store,
            providers=providers,
            default_region=settings.default_region,
            retry_policy=settings.retry_policy(),
        )

    # -- Registration --

    def register_provider(self, adapter: ProviderAdapter) -> None:
        """Register *adapter* under its ``name``, replacing any previous one."""
        if adapter.name in self._adapters:
            logger.warning("Replacing provider adapter %s", adapter.name)
        self._adapters[adapter.name] = adapter

    def get_provider(self, name: str) -> ProviderAdapter:
        return resolve_adapter(self._adapters, name)

    @property
    def providers(self) -> list[str]:
        return sorted(self._adapters)

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def provisioner(self) -> NumberProvisioner:
        return self._provisioner

    # -- Webhooks --

    async def handle_inbound(self, provider: str, request: WebhookRequest) -> WebhookResponse:
        return await self._inbound.handle(provider, request)

    async def handle_status(self, provider: str, request: WebhookRequest) -> WebhookResponse:
        return await self._reconciler.handle(provider, request)

    # -- Provisioning --

    async def search_numbers(
        self,
        caller_id: str | None,
        account_id: str,
        provider: str,
        criteria: NumberSearchCriteria,
    ) -> list[AvailableNumberCandidate]:
        return await self._provisioner.search(caller_id, account_id, provider, criteria)

    async def purchase_number(
        self,
        caller_id: str | None,
        account_id: str,
        provider: str,
        candidate: AvailableNumberCandidate,
        *,
        allow_additional: bool = False,
    ) -> OwnedNumber:
        return await self._provisioner.purchase(
            caller_id, account_id, provider, candidate, allow_additional=allow_additional
        )

    async def provision_number(
        self,
        caller_id: str | None,
        account_id: str,
        provider: str,
        criteria: NumberSearchCriteria,
        *,
        allow_additional: bool = False,
    ) -> OwnedNumber:
        return await self._provisioner.provision(
            caller_id, account_id, provider, criteria, allow_additional=allow_additional
        )

    async def retry_attachment(
        self,
        phone_number: str,
        *,
        caller_id: str | None = None,
        account_id: str | None = None,
    ) -> OwnedNumber:
        return await self._provisioner.retry_attachment(
            phone_number, caller_id=caller_id, account_id=account_id
        )

    # -- Messaging --

    async def send_message(
        self,
        account_id: str,
        to: str,
        body: str,
        provider: str | None = None,
    ) -> Message:
        return await self._sender.send(account_id, to, body, provider)

    # -- Lifecycle --

    async def close(self) -> None:
        """Close every provider adapter, then the store."""
        for adapter in self._adapters.values():
            await adapter.close()
        await self._store.close()

    async def __aenter__(self) -> RelayKit:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
