"""Phone number search, purchase and messaging-group attachment."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from relaykit.core._helpers import resolve_adapter
from relaykit.core.errors import (
    AttachmentFailed,
    Forbidden,
    InvalidInput,
    NumberAlreadyOwned,
    NumberUnavailable,
    ProviderError,
    Unauthorized,
)
from relaykit.core.retry import retry_with_backoff
from relaykit.models.number import (
    AvailableNumberCandidate,
    NumberSearchCriteria,
    OwnedNumber,
)
from relaykit.models.policy import RetryPolicy
from relaykit.phone import national_prefix_matches, normalize_phone

if TYPE_CHECKING:
    from relaykit.providers.base import ProviderAdapter
    from relaykit.store.base import MessageStore

logger = logging.getLogger("relaykit.provisioning")


class NumberProvisioner:
    """Runs the authorize, search, purchase, record, attach sequence.

    Purchasing spends money and cannot be undone, so the ``OwnedNumber`` is
    written to the store right after the vendor confirms the purchase and
    before attachment is attempted. A failed attachment leaves a recorded,
    unattached number that ``retry_attachment`` or ``reconcile_unattached``
    can finish later without buying again.

    Args:
        store: Persisted store for owned numbers and account admins.
        adapters: Provider adapters keyed by provider name.
        retry_policy: Backoff used when re-attaching numbers.
        default_region: Region used to normalize vendor-returned numbers.
    """

    def __init__(
        self,
        store: MessageStore,
        adapters: Mapping[str, ProviderAdapter],
        *,
        retry_policy: RetryPolicy | None = None,
        default_region: str = "US",
    ) -> None:
        self._store = store
        self._adapters = adapters
        self._retry_policy = retry_policy or RetryPolicy()
        self._default_region = default_region

    async def authorize(self, caller_id: str | None, account_id: str) -> None:
        """Raise unless *caller_id* is the account's designated administrator."""
        if not caller_id:
            raise Unauthorized("Caller identity is required")
        admin = await self._store.get_account_admin(account_id)
        if admin is None or admin != caller_id:
            logger.warning(
                "Caller %s is not the administrator of account %s",
                caller_id,
                account_id,
            )
            raise Forbidden(f"{caller_id} may not manage numbers for account {account_id}")

    async def search(
        self,
        caller_id: str | None,
        account_id: str,
        provider: str,
        criteria: NumberSearchCriteria,
    ) -> list[AvailableNumberCandidate]:
        await self.authorize(caller_id, account_id)
        adapter = resolve_adapter(self._adapters, provider)
        candidates = await adapter.search_available_numbers(criteria)
        matching = [
            c
            for c in candidates
            if national_prefix_matches(c.phone_number, criteria.country, criteria.prefix)
        ]
        if len(matching) != len(candidates):
            logger.debug(
                "Dropped %d %s candidates outside prefix %s",
                len(candidates) - len(matching),
                provider,
                criteria.prefix,
            )
        return matching

    async def _guard(self, account_id: str, provider: str) -> None:
        owned = await self._store.list_owned_numbers(account_id)
        for number in owned:
            if number.provider == provider and number.capabilities.sms:
                raise NumberAlreadyOwned(
                    f"Account {account_id} already owns {number.phone_number} from {provider}"
                )

    async def purchase(
        self,
        caller_id: str | None,
        account_id: str,
        provider: str,
        candidate: AvailableNumberCandidate,
        *,
        allow_additional: bool = False,
    ) -> OwnedNumber:
        """Buy *candidate* for *account_id*, record it, then attach it.

        Raises:
            NumberUnavailable: The candidate expired; search again.
            NumberAlreadyOwned: The account already has an SMS number from
                this provider and ``allow_additional`` is False.
            AttachmentFailed: The number was bought and recorded but could
                not be attached to the messaging group.
        """
        await self.authorize(caller_id, account_id)
        adapter = resolve_adapter(self._adapters, provider)
        if candidate.provider != provider:
            raise InvalidInput(f"Candidate belongs to {candidate.provider}, not {provider}")
        phone_number = normalize_phone(candidate.phone_number, self._default_region)

        if not allow_additional:
            await self._guard(account_id, provider)

        purchased = await adapter.purchase_number(candidate)
        owned = purchased.model_copy(
            update={"account_id": account_id, "phone_number": phone_number, "attached": False}
        )
        try:
            recorded_id = await self._store.insert_owned_number(owned)
        except Exception:
            logger.critical(
                "Purchased %s from %s but could not record it; reconcile manually",
                phone_number,
                provider,
                extra={"account_id": account_id, "provider_number_id": owned.provider_number_id},
            )
            raise
        if recorded_id != owned.id:
            owned = owned.model_copy(update={"id": recorded_id})
        logger.info(
            "Recorded purchased number %s for account %s",
            phone_number,
            account_id,
            extra={"provider": provider},
        )
        return await self._attach(adapter, owned)

    async def _attach(self, adapter: ProviderAdapter, owned: OwnedNumber) -> OwnedNumber:
        try:
            attached = await adapter.attach_to_messaging_group(owned)
        except ProviderError as exc:
            logger.warning(
                "Attachment of %s failed, number left unattached: %s",
                owned.phone_number,
                exc,
            )
            raise AttachmentFailed(owned, exc) from exc
        return await self._mark_attached(attached)

    async def _mark_attached(self, attached: OwnedNumber) -> OwnedNumber:
        marked = await self._store.mark_number_attached(
            attached.phone_number,
            attached.messaging_group_id,
            attached.provider_number_id,
        )
        return marked or attached.model_copy(update={"attached": True})

    async def retry_attachment(
        self,
        phone_number: str,
        *,
        caller_id: str | None = None,
        account_id: str | None = None,
        policy: RetryPolicy | None = None,
    ) -> OwnedNumber:
        """Attach an already-recorded number. Never purchases.

        When *account_id* is given the caller is authorized against it and
        the number must belong to that account.

        Raises:
            InvalidInput: The number is not recorded.
            ProviderUnavailable: Attachment still failed after all retries.
        """
        if account_id is not None:
            await self.authorize(caller_id, account_id)
        e164 = normalize_phone(phone_number, self._default_region)
        owned = await self._store.get_owned_number_by_number(e164)
        if owned is None:
            raise InvalidInput(f"{e164} is not a recorded number")
        if account_id is not None and owned.account_id != account_id:
            raise Forbidden(f"{e164} does not belong to account {account_id}")
        if owned.attached:
            return owned

        adapter = resolve_adapter(self._adapters, owned.provider)
        attached = await retry_with_backoff(
            adapter.attach_to_messaging_group,
            policy or self._retry_policy,
            owned,
        )
        logger.info("Attached %s after retry", e164, extra={"provider": owned.provider})
        return await self._mark_attached(attached)

    async def reconcile_unattached(self, policy: RetryPolicy | None = None) -> list[OwnedNumber]:
        """Retry attachment for every recorded but unattached number.

        Returns the numbers that are now attached; failures are logged and
        left for the next run.
        """
        done: list[OwnedNumber] = []
        for owned in await self._store.list_unattached_numbers():
            try:
                done.append(await self.retry_attachment(owned.phone_number, policy=policy))
            except ProviderError as exc:
                logger.warning("Still cannot attach %s: %s", owned.phone_number, exc)
        return done

    async def provision(
        self,
        caller_id: str | None,
        account_id: str,
        provider: str,
        criteria: NumberSearchCriteria,
        *,
        allow_additional: bool = False,
    ) -> OwnedNumber:
        """Search and buy the first purchasable candidate.

        Expired candidates are skipped; ``NumberUnavailable`` is raised when
        none can be bought.
        """
        candidates = await self.search(caller_id, account_id, provider, criteria)
        if not candidates:
            raise NumberUnavailable(provider, "no numbers match the search criteria")
        last_exc: NumberUnavailable | None = None
        for candidate in candidates:
            try:
                return await self.purchase(
                    caller_id,
                    account_id,
                    provider,
                    candidate,
                    allow_additional=allow_additional,
                )
            except NumberUnavailable as exc:
                logger.info("Candidate %s unavailable, trying next", candidate.phone_number)
                last_exc = exc
        assert last_exc is not None
        raise last_exc
