"""
Collaborator contracts for the interaction coordinator.

  HostBridge     — the host engine: owner context, reference resolution,
                   macro execution.
  SystemAdapter  — game-system specifics as plain functions (transform,
                   container detection, two-handed recompute, slot locks,
                   sort order, auto-populate matching, auto-add of created
                   items). Every hook is optional; the coordinator falls
                   back to core behavior.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from hotbar.kernel.cells import GridCell
from hotbar.kernel.types import CellRecord, ContainerRef, Document, OwnerHandle

# ---------------------------------------------------------------------------
# Host engine
# ---------------------------------------------------------------------------


class HostBridge:
    """
    Abstract host interface.
    Implement against the game engine, or use MemoryHost in tests.
    """

    async def resolve_reference(self, reference_id: str) -> Document | None:
        """Fetch the document a reference points to. Returns None if it's gone."""
        raise NotImplementedError

    def current_owner(self) -> OwnerHandle | None:
        """The owner whose hotbar is currently shown."""
        raise NotImplementedError

    async def execute_macro(self, record: CellRecord, owner: OwnerHandle | None) -> None:
        """Run a macro-kind cell with owner context."""
        raise NotImplementedError


class MemoryHost(HostBridge):
    """In-memory host for testing."""

    def __init__(self, owner: OwnerHandle | None = None) -> None:
        self.owner = owner
        self.documents: dict[str, Document] = {}
        self.executed: list[str] = []

    def add(self, document: Document) -> Document:
        self.documents[document.reference_id] = document
        return document

    async def resolve_reference(self, reference_id: str) -> Document | None:
        return self.documents.get(reference_id)

    def current_owner(self) -> OwnerHandle | None:
        return self.owner

    async def execute_macro(self, record: CellRecord, owner: OwnerHandle | None) -> None:
        self.executed.append(record.get("referenceId", ""))


# ---------------------------------------------------------------------------
# Game-system adapter
# ---------------------------------------------------------------------------


@dataclass
class SystemAdapter:
    """Strategy object: each field is an optional hook supplied by a system."""

    name: str = "core"
    transform: Callable[[Document], Awaitable[CellRecord | None]] | None = None
    is_container: Callable[[CellRecord], Awaitable[bool]] | None = None
    get_container_contents: Callable[[Document, OwnerHandle | None], Awaitable[dict[str, Any]]] | None = None
    on_exclusive_set_cell_updated: Callable[[int, str], Awaitable[None]] | None = None
    is_slot_locked: Callable[[GridCell], bool] | None = None
    is_blocked: Callable[[Document], Awaitable[bool]] | None = None
    use_item: Callable[[GridCell, OwnerHandle | None], Awaitable[None]] | None = None
    sort_items: Callable[[list[CellRecord]], Awaitable[list[CellRecord]]] | None = None
    matching_items: Callable[[OwnerHandle, ContainerRef], Awaitable[list[Document]]] | None = None
    should_auto_add: Callable[[Document], Awaitable[bool]] | None = None
    preferred_grid: Callable[[Document], int | None] | None = None
    options: dict[str, Any] = field(default_factory=dict)


async def call_hook(hook: Callable[..., Any] | None, *args: Any, default: Any = None) -> Any:
    """Call an optional hook, awaiting it if it's async."""
    if hook is None:
        return default
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def default_transform(document: Document) -> CellRecord:
    """Minimal cell record when no system transform is supplied."""
    return {
        "referenceId": document.reference_id,
        "displayName": document.name,
        "imageRef": document.img,
        "kind": document.kind,
    }


async def transform_document(adapter: SystemAdapter | None, document: Document) -> CellRecord | None:
    if adapter is None or adapter.transform is None:
        return default_transform(document)
    return await call_hook(adapter.transform, document)
