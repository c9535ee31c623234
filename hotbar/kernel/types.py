"""
Hotbar Kernel — Shared Types

Data classes and slot-key helpers used across the store, resolver and
coordinator. These are the contracts that bind the kernel together.

Addressing:
- A container is identified by (kind, index).
- A cell inside a container is identified by its "col-row" slot key.
- A nested popover cell is addressed by a path of hops from the root
  container down through the parent cell's embedded grid.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Container kinds
# ---------------------------------------------------------------------------

HOTBAR = "hotbar"
WEAPON_SET = "weaponSet"
QUICK_ACCESS = "quickAccess"
CONTAINER_POPOVER = "containerPopover"

# Top-level containers persisted as siblings in the state document
TOP_LEVEL_KINDS: tuple[str, ...] = (HOTBAR, WEAPON_SET, QUICK_ACCESS)

CONTAINER_KINDS: set[str] = {HOTBAR, WEAPON_SET, QUICK_ACCESS, CONTAINER_POPOVER}

# Record kinds the coordinator cares about
MACRO_KIND = "Macro"
ITEM_KIND = "Item"
ACTIVITY_KIND = "Activity"


# ---------------------------------------------------------------------------
# Slot keys
# ---------------------------------------------------------------------------

SLOT_KEY_PATTERN = re.compile(r"^(\d+)-(\d+)$")


def make_slot_key(col: int, row: int) -> str:
    return f"{col}-{row}"


def parse_slot_key(key: str) -> tuple[int, int] | None:
    """Return (col, row) for a "col-row" key, or None if malformed."""
    if not isinstance(key, str):
        return None
    m = SLOT_KEY_PATTERN.match(key)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def is_valid_slot_key(key: str, rows: int, cols: int) -> bool:
    parsed = parse_slot_key(key)
    if parsed is None:
        return False
    col, row = parsed
    return 0 <= col < cols and 0 <= row < rows


def iter_slot_keys(rows: int, cols: int) -> Iterator[str]:
    """Slot keys in placement order: left to right, then down."""
    for row in range(rows):
        for col in range(cols):
            yield make_slot_key(col, row)


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContainerRef:
    """A container: its kind plus its index among siblings of that kind."""

    kind: str
    index: int = 0


@dataclass(frozen=True)
class SlotLocation:
    """A single cell inside a top-level (or nested) container."""

    container: str
    container_index: int
    slot_key: str

    @property
    def ref(self) -> ContainerRef:
        return ContainerRef(self.container, self.container_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "container": self.container,
            "containerIndex": self.container_index,
            "slotKey": self.slot_key,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SlotLocation:
        return cls(
            container=d["container"],
            container_index=int(d.get("containerIndex", 0)),
            slot_key=d["slotKey"],
        )

    def __str__(self) -> str:
        return f"{self.container}[{self.container_index}].{self.slot_key}"


@dataclass(frozen=True)
class PathHop:
    """One step of a cell path. The first hop is always a top-level container."""

    kind: str
    index: int
    slot_key: str


def slot_path(location: SlotLocation, parent: SlotLocation | None = None) -> list[PathHop]:
    """
    Build the hop path from the state root to a cell.

    A nested popover cell becomes [parent hop, nested hop]; every other cell
    is a single hop.
    """
    if location.container == CONTAINER_POPOVER:
        if parent is None:
            return []
        return [
            PathHop(parent.container, parent.container_index, parent.slot_key),
            PathHop(CONTAINER_POPOVER, location.container_index, location.slot_key),
        ]
    return [PathHop(location.container, location.container_index, location.slot_key)]


# ---------------------------------------------------------------------------
# External collaborators' data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OwnerHandle:
    """
    Opaque handle for the entity a hotbar belongs to.

    is_global marks the GM alternate hotbar, which lives in a global setting
    rather than in an owner-scoped document.
    """

    id: str
    name: str = ""
    is_global: bool = False


@dataclass
class Document:
    """An externally-owned item, macro or activity a cell can point to."""

    reference_id: str
    name: str = ""
    img: str | None = None
    kind: str = ITEM_KIND
    owner_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


CellRecord = dict[str, Any]
