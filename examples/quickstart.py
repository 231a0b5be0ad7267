"""Provision a number, receive a message and reply, all against the mock vendor.

Walks the full lifecycle without network access:
    1. An account admin searches the mock inventory and buys a number.
    2. An inbound SMS webhook is routed to the owning account.
    3. A reply is sent from the account's number.
    4. Out-of-order delivery reports leave the reply delivered.

Run with:
    python examples/quickstart.py
"""

from __future__ import annotations

import asyncio
import logging

from relaykit import InMemoryStore, MockProvider, NumberSearchCriteria, RelayKit

logging.basicConfig(level=logging.INFO)


async def main() -> None:
    store = InMemoryStore()
    mock = MockProvider(inventory=["+14155550101", "+14155550102", "+12125550103"])

    async with RelayKit(store=store, providers=[mock]) as kit:
        await store.set_account_admin("acct-1", "alice")

        candidates = await kit.search_numbers(
            "alice", "acct-1", "mock", NumberSearchCriteria(country="US", prefix="415")
        )
        print("Available:", [c.phone_number for c in candidates])

        number = await kit.purchase_number("alice", "acct-1", "mock", candidates[0])
        print(f"Purchased {number.phone_number} (attached={number.attached})")

        await kit.handle_inbound(
            "mock",
            mock.inbound_request(
                {"from": "+15551234567", "to": number.phone_number, "body": "Hi!", "id": "in-1"}
            ),
        )
        received = await store.get_message_by_provider_id("mock", "in-1")
        print(f"Received for {received.account_id}: {received.body!r}")

        reply = await kit.send_message("acct-1", "+15551234567", "Hello back")
        print(f"Sent {reply.id} via {reply.provider} ({reply.status})")

        for status in ("delivered", "sent"):
            await kit.handle_status(
                "mock", mock.inbound_request({"id": reply.provider_message_id, "status": status})
            )
        final = await store.get_message(reply.id)
        print(f"Final status: {final.status}")


if __name__ == "__main__":
    asyncio.run(main())
