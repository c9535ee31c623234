"""
Hotbar Kernel — Storage Protocol

Durable storage for one versioned state document per owner, the legacy
per-owner flags that predate it, and a handful of global (non-owner-scoped)
settings values.

Implement with Postgres for production (postgres_storage.py), or in-memory
for tests.
"""

from __future__ import annotations

import copy
from typing import Any

# Global setting holding the GM alternate hotbar (no owner document)
GM_HOTBAR_SETTING = "gmHotbarState"
# Global setting holding legacy GM hotbar flags
GM_LEGACY_SETTING = "gmHotbarLegacy"


class HotbarStorage:
    """
    Abstract storage interface.
    Every method is a suspension point; errors propagate to the caller.
    """

    async def get_document(self, owner_id: str) -> dict[str, Any] | None:
        """Fetch the state document for an owner. Returns None if not found."""
        raise NotImplementedError

    async def put_document(self, owner_id: str, document: dict[str, Any]) -> None:
        """Write (insert or replace) the state document for an owner."""
        raise NotImplementedError

    async def get_legacy(self, owner_id: str) -> dict[str, Any]:
        """Fetch pre-unification flags for an owner, keyed by flag name."""
        raise NotImplementedError

    async def delete_legacy(self, owner_id: str, keys: list[str]) -> None:
        """Delete pre-unification flags once they've been migrated."""
        raise NotImplementedError

    async def get_setting(self, key: str) -> Any | None:
        """Fetch a global settings value. Returns None if not set."""
        raise NotImplementedError

    async def put_setting(self, key: str, value: Any) -> None:
        """Write a global settings value."""
        raise NotImplementedError


class MemoryStorage(HotbarStorage):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.legacy: dict[str, dict[str, Any]] = {}
        self.settings: dict[str, Any] = {}
        self.put_count = 0

    async def get_document(self, owner_id: str) -> dict[str, Any] | None:
        doc = self.documents.get(owner_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def put_document(self, owner_id: str, document: dict[str, Any]) -> None:
        self.documents[owner_id] = copy.deepcopy(document)
        self.put_count += 1

    async def get_legacy(self, owner_id: str) -> dict[str, Any]:
        return copy.deepcopy(self.legacy.get(owner_id, {}))

    async def delete_legacy(self, owner_id: str, keys: list[str]) -> None:
        flags = self.legacy.get(owner_id)
        if flags is None:
            return
        for key in keys:
            flags.pop(key, None)
        if not flags:
            self.legacy.pop(owner_id, None)

    async def get_setting(self, key: str) -> Any | None:
        value = self.settings.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def put_setting(self, key: str, value: Any) -> None:
        self.settings[key] = copy.deepcopy(value)
        self.put_count += 1
