"""PostgreSQL implementation of MessageStore using asyncpg."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from relaykit.core.errors import NumberAlreadyOwned, StoreError
from relaykit.core.keywords import OPT_OUT_KEYWORDS
from relaykit.models.enums import MessageDirection, MessageStatus, forward_sources
from relaykit.models.message import Message
from relaykit.models.number import NumberCapabilities, OwnedNumber
from relaykit.store.base import MessageStore

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    direction TEXT NOT NULL,
    from_number TEXT NOT NULL,
    to_number TEXT NOT NULL,
    body TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL,
    provider_message_id TEXT,
    error_code TEXT,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    metadata JSONB NOT NULL DEFAULT '{}'
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_provider_id
    ON messages(provider, provider_message_id) WHERE provider_message_id IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_messages_account ON messages(account_id);

CREATE TABLE IF NOT EXISTS owned_numbers (
    id TEXT PRIMARY KEY,
    phone_number TEXT NOT NULL UNIQUE,
    account_id TEXT,
    provider TEXT NOT NULL,
    provider_number_id TEXT NOT NULL,
    capabilities JSONB NOT NULL,
    messaging_group_id TEXT,
    attached BOOLEAN NOT NULL DEFAULT false,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_owned_numbers_account ON owned_numbers(account_id);
CREATE INDEX IF NOT EXISTS idx_owned_numbers_unattached
    ON owned_numbers(attached) WHERE attached = false;

CREATE TABLE IF NOT EXISTS account_admins (
    account_id TEXT PRIMARY KEY,
    admin_id TEXT NOT NULL
);
"""

_MESSAGE_COLUMNS = (
    "id, account_id, provider, direction, from_number, to_number, body, status, "
    "provider_message_id, error_code, error_message, created_at, updated_at, metadata"
)

_NUMBER_COLUMNS = (
    "id, phone_number, account_id, provider, provider_number_id, capabilities, "
    "messaging_group_id, attached, created_at"
)


def _message_from_row(row: Any) -> Message:
    data = dict(row)
    data["metadata"] = json.loads(data["metadata"]) if data["metadata"] else {}
    return Message.model_validate(data)


def _number_from_row(row: Any) -> OwnedNumber:
    data = dict(row)
    data["capabilities"] = NumberCapabilities.model_validate_json(data["capabilities"])
    return OwnedNumber.model_validate(data)


def _sources(new_status: MessageStatus) -> list[str]:
    return [s.value for s in forward_sources(new_status)]


class PostgresStore(MessageStore):
    """PostgreSQL-backed message store using asyncpg.

    Status updates are single conditional ``UPDATE`` statements so the
    forward-only rule holds across concurrent webhook deliveries.
    """

    def __init__(
        self,
        dsn: str | None = None,
        pool: Any = None,
    ) -> None:
        try:
            import asyncpg as _asyncpg
        except ImportError as exc:
            raise ImportError(
                "asyncpg is required for PostgresStore. "
                "Install it with: pip install relaykit[postgres]"
            ) from exc
        self._asyncpg = _asyncpg
        self._dsn = dsn
        self._pool = pool
        self._owns_pool = pool is None

    async def init(self, min_size: int = 2, max_size: int = 10) -> None:
        """Create the connection pool (if needed) and ensure schema exists."""
        if self._pool is None:
            self._pool = await self._asyncpg.create_pool(
                self._dsn,
                min_size=min_size,
                max_size=max_size,
            )
        async with self._pool.acquire() as conn:
            await conn.execute(_SCHEMA)

    async def close(self) -> None:
        """Release the connection pool if we own it."""
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> PostgresStore:
        await self.init()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        if self._pool is None:
            raise StoreError("PostgresStore used before init()")
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except (self._asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc

    # ── Owned numbers ────────────────────────────────────────────

    async def get_owned_number_by_number(self, phone_number: str) -> OwnedNumber | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_NUMBER_COLUMNS} FROM owned_numbers WHERE phone_number = $1",
                phone_number,
            )
        return _number_from_row(row) if row else None

    async def insert_owned_number(self, number: OwnedNumber) -> str:
        async with self._connection() as conn:
            inserted = await conn.fetchval(
                "INSERT INTO owned_numbers (id, phone_number, account_id, provider, "
                "provider_number_id, capabilities, messaging_group_id, attached, created_at) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9) "
                "ON CONFLICT (phone_number) DO NOTHING RETURNING id",
                number.id,
                number.phone_number,
                number.account_id,
                number.provider,
                number.provider_number_id,
                number.capabilities.model_dump_json(),
                number.messaging_group_id,
                number.attached,
                number.created_at,
            )
            if inserted is not None:
                return str(inserted)
            row = await conn.fetchrow(
                "SELECT id, account_id, provider FROM owned_numbers WHERE phone_number = $1",
                number.phone_number,
            )
        if row is not None and (
            row["account_id"] == number.account_id and row["provider"] == number.provider
        ):
            return str(row["id"])
        raise NumberAlreadyOwned(f"{number.phone_number} is already recorded for another account")

    async def list_owned_numbers(self, account_id: str) -> list[OwnedNumber]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT {_NUMBER_COLUMNS} FROM owned_numbers "
                "WHERE account_id = $1 ORDER BY created_at",
                account_id,
            )
        return [_number_from_row(r) for r in rows]

    async def list_unattached_numbers(self) -> list[OwnedNumber]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT {_NUMBER_COLUMNS} FROM owned_numbers "
                "WHERE attached = false ORDER BY created_at"
            )
        return [_number_from_row(r) for r in rows]

    async def mark_number_attached(
        self,
        phone_number: str,
        messaging_group_id: str | None,
        provider_number_id: str | None = None,
    ) -> OwnedNumber | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "UPDATE owned_numbers SET attached = true, messaging_group_id = $2, "
                "provider_number_id = COALESCE($3, provider_number_id) "
                f"WHERE phone_number = $1 RETURNING {_NUMBER_COLUMNS}",
                phone_number,
                messaging_group_id,
                provider_number_id or None,
            )
        return _number_from_row(row) if row else None

    # ── Messages ─────────────────────────────────────────────────

    async def insert_message(self, message: Message) -> str:
        async with self._connection() as conn:
            inserted = await conn.fetchval(
                f"INSERT INTO messages ({_MESSAGE_COLUMNS}) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14) "
                "ON CONFLICT (provider, provider_message_id) "
                "WHERE provider_message_id IS NOT NULL DO NOTHING RETURNING id",
                message.id,
                message.account_id,
                message.provider,
                message.direction.value,
                message.from_number,
                message.to_number,
                message.body,
                message.status.value,
                message.provider_message_id,
                message.error_code,
                message.error_message,
                message.created_at,
                message.updated_at,
                json.dumps(message.metadata),
            )
            if inserted is not None:
                return str(inserted)
            existing = await conn.fetchval(
                "SELECT id FROM messages WHERE provider = $1 AND provider_message_id = $2",
                message.provider,
                message.provider_message_id,
            )
        return str(existing)

    async def get_message(self, message_id: str) -> Message | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = $1", message_id
            )
        return _message_from_row(row) if row else None

    async def get_message_by_provider_id(
        self, provider: str, provider_message_id: str
    ) -> Message | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages "
                "WHERE provider = $1 AND provider_message_id = $2",
                provider,
                provider_message_id,
            )
        return _message_from_row(row) if row else None

    async def get_opt_out_keyword(self, account_id: str, phone_number: str) -> str | None:
        async with self._connection() as conn:
            return await conn.fetchval(
                "SELECT metadata->>'keyword' FROM messages "
                "WHERE account_id = $1 AND direction = $2 AND from_number = $3 "
                "AND metadata->>'keyword' = ANY($4::text[]) "
                "ORDER BY created_at DESC LIMIT 1",
                account_id,
                MessageDirection.INBOUND.value,
                phone_number,
                sorted(k.value for k in OPT_OUT_KEYWORDS),
            )

    async def update_message_status_if_forward(
        self,
        provider: str,
        provider_message_id: str,
        new_status: MessageStatus,
        *,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        async with self._connection() as conn:
            result = await conn.execute(
                "UPDATE messages SET status = $3, "
                "error_code = COALESCE($4, error_code), "
                "error_message = COALESCE($5, error_message), updated_at = now() "
                "WHERE provider = $1 AND provider_message_id = $2 AND status = ANY($6::text[])",
                provider,
                provider_message_id,
                new_status.value,
                error_code,
                error_message,
                _sources(new_status),
            )
        return str(result) == "UPDATE 1"

    async def record_send_result(
        self,
        message_id: str,
        new_status: MessageStatus,
        *,
        provider_message_id: str | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        async with self._connection() as conn:
            result = await conn.execute(
                "UPDATE messages SET status = $2, "
                "provider_message_id = COALESCE($3, provider_message_id), "
                "error_code = COALESCE($4, error_code), "
                "error_message = COALESCE($5, error_message), updated_at = now() "
                "WHERE id = $1 AND status = ANY($6::text[])",
                message_id,
                new_status.value,
                provider_message_id,
                error_code,
                error_message,
                _sources(new_status),
            )
        return str(result) == "UPDATE 1"

    # ── Accounts ─────────────────────────────────────────────────

    async def get_account_admin(self, account_id: str) -> str | None:
        async with self._connection() as conn:
            admin = await conn.fetchval(
                "SELECT admin_id FROM account_admins WHERE account_id = $1", account_id
            )
        return str(admin) if admin is not None else None

    async def set_account_admin(self, account_id: str, admin_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute(
                "INSERT INTO account_admins (account_id, admin_id) VALUES ($1, $2) "
                "ON CONFLICT (account_id) DO UPDATE SET admin_id = EXCLUDED.admin_id",
                account_id,
                admin_id,
            )
