"""
PostgresStorage adapter for the hotbar kernel store.

Implements the HotbarStorage protocol using Postgres as the backend.
Documents and flag values are stored as JSONB.
"""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from hotbar.kernel.storage import HotbarStorage


async def _init_connection(conn: asyncpg.Connection) -> None:
    """JSONB codec - decode to Python dict/list."""
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


async def create_pool(dsn: str, *, min_size: int = 1, max_size: int = 10) -> asyncpg.Pool:
    """Create a pool with the JSONB codec installed on every connection."""
    return await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=60,
        init=_init_connection,
    )


class PostgresStorage(HotbarStorage):
    """
    Postgres-based storage for hotbar state.

    Uses three tables:
    - hotbar_documents: one versioned state document per owner
    - hotbar_legacy_flags: pre-unification per-owner values
    - hotbar_settings: global values (GM alternate hotbar)
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_document(self, owner_id: str) -> dict[str, Any] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT document FROM hotbar_documents WHERE owner_id = $1",
                owner_id,
            )
            return row["document"] if row else None

    async def put_document(self, owner_id: str, document: dict[str, Any]) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO hotbar_documents (owner_id, version, document, updated_at)
                VALUES ($1, $2, $3, now())
                ON CONFLICT (owner_id)
                DO UPDATE SET version = EXCLUDED.version, document = EXCLUDED.document, updated_at = now()
                """,
                owner_id,
                document.get("version", 0),
                document,
            )

    async def get_legacy(self, owner_id: str) -> dict[str, Any]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT flag, value FROM hotbar_legacy_flags WHERE owner_id = $1",
                owner_id,
            )
            return {row["flag"]: row["value"] for row in rows}

    async def delete_legacy(self, owner_id: str, keys: list[str]) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                "DELETE FROM hotbar_legacy_flags WHERE owner_id = $1 AND flag = ANY($2::text[])",
                owner_id,
                keys,
            )

    async def get_setting(self, key: str) -> Any | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT value FROM hotbar_settings WHERE key = $1",
                key,
            )
            return row["value"] if row else None

    async def put_setting(self, key: str, value: Any) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO hotbar_settings (key, value, updated_at)
                VALUES ($1, $2, now())
                ON CONFLICT (key)
                DO UPDATE SET value = EXCLUDED.value, updated_at = now()
                """,
                key,
                value,
            )

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()
