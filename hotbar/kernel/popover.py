"""
Nested popover — a container living inside a single cell's record.

A bag item's interior is persisted as the parent record's `containerGrid`,
never as a sibling top-level container. The popover itself exists only while
open; its cells carry the parent reference so writes can be routed back
through the parent cell.
"""

from __future__ import annotations

import logging
from typing import Any

from hotbar.kernel.cells import GridCell, ParentCell
from hotbar.kernel.layout import first_free_slot
from hotbar.kernel.types import CONTAINER_POPOVER, ContainerRef, iter_slot_keys, parse_slot_key

logger = logging.getLogger(__name__)

DEFAULT_POPOVER_ROWS = 3
DEFAULT_POPOVER_COLS = 5


def reconcile_contents(saved_grid: dict[str, Any] | None, fresh: dict[str, Any]) -> dict[str, Any]:
    """
    Merge a previously saved nested grid with the container's current contents.

    - Items whose referenceId still appears in `fresh` keep their saved slot
      (with fresh data).
    - Saved items no longer present are dropped.
    - Newly appeared items go to the first free slot; if none is left they
      are logged and skipped.
    """
    fresh_items = fresh.get("items") or {}
    if not saved_grid:
        return {
            "rows": fresh.get("rows", DEFAULT_POPOVER_ROWS),
            "cols": fresh.get("cols", DEFAULT_POPOVER_COLS),
            "items": dict(fresh_items),
        }

    remaining: dict[str, dict[str, Any]] = {}
    for record in fresh_items.values():
        if record and record.get("referenceId"):
            remaining[record["referenceId"]] = record

    rows = saved_grid.get("rows") or fresh.get("rows") or DEFAULT_POPOVER_ROWS
    cols = saved_grid.get("cols") or fresh.get("cols") or DEFAULT_POPOVER_COLS

    items: dict[str, Any] = {}
    for slot, record in (saved_grid.get("items") or {}).items():
        ref = record.get("referenceId") if record else None
        if ref and ref in remaining:
            items[slot] = remaining.pop(ref)

    for ref, record in remaining.items():
        slot = first_free_slot(items, rows, cols)
        if slot is None:
            logger.warning("popover: no empty slot for new item %s (%s)", ref, record.get("displayName"))
            continue
        items[slot] = record

    return {"rows": rows, "cols": cols, "items": items}


class NestedPopover:
    """An open popover: the parent cell plus one GridCell per nested slot."""

    def __init__(self, parent: ParentCell, grid: dict[str, Any]) -> None:
        self.parent = parent
        self.grid = grid
        self.cells: list[GridCell] = []
        items = grid.get("items") or {}
        for key in iter_slot_keys(grid.get("rows", 0), grid.get("cols", 0)):
            col, row = parse_slot_key(key)
            self.cells.append(
                GridCell(
                    col=col,
                    row=row,
                    data=items.get(key),
                    context=(ContainerRef(CONTAINER_POPOVER, 0),),
                    parent=parent,
                )
            )

    def cell_at(self, slot_key: str) -> GridCell | None:
        for cell in self.cells:
            if cell.slot_key == slot_key:
                return cell
        return None
