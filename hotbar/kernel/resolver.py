"""
Container type resolver — classifies a cell by its structural context.

Pure and stateless. Priority order resolves cells nested inside more than
one candidate container:

  nested popover  >  exclusive (weapon) set  >  quick access  >  hotbar grid

Hotbar is the fallback and takes the cell's own grid_index.
"""

from __future__ import annotations

from hotbar.kernel.cells import GridCell
from hotbar.kernel.types import (
    CONTAINER_POPOVER,
    HOTBAR,
    QUICK_ACCESS,
    WEAPON_SET,
    ContainerRef,
    SlotLocation,
)

_PRIORITY: tuple[str, ...] = (CONTAINER_POPOVER, WEAPON_SET, QUICK_ACCESS)


def detect_container(cell: GridCell | None) -> ContainerRef:
    """Return the (kind, index) of the container a cell belongs to."""
    if cell is None:
        return ContainerRef(HOTBAR, 0)
    for kind in _PRIORITY:
        # innermost match wins within a kind
        for ref in reversed(cell.context):
            if ref.kind == kind:
                return ref
    return ContainerRef(HOTBAR, cell.grid_index or 0)


def slot_key_of(cell: GridCell) -> str:
    return cell.slot_key


def location_of(cell: GridCell) -> SlotLocation:
    ref = detect_container(cell)
    return SlotLocation(ref.kind, ref.index, cell.slot_key)


def is_exclusive_set(cell: GridCell) -> bool:
    return detect_container(cell).kind == WEAPON_SET


def is_quick_access(cell: GridCell) -> bool:
    return detect_container(cell).kind == QUICK_ACCESS


def is_hotbar(cell: GridCell) -> bool:
    return detect_container(cell).kind == HOTBAR


def is_nested_popover(cell: GridCell) -> bool:
    return detect_container(cell).kind == CONTAINER_POPOVER


def is_active_exclusive_set(cell: GridCell, active_index: int) -> bool:
    """True only for cells of the currently active weapon set."""
    ref = detect_container(cell)
    if ref.kind != WEAPON_SET:
        return False
    return ref.index == active_index


def is_inactive_exclusive_set(cell: GridCell, active_index: int) -> bool:
    return is_exclusive_set(cell) and not is_active_exclusive_set(cell, active_index)


def same_container(a: GridCell, b: GridCell) -> bool:
    """Kind and index both match. Popover cells also need the same parent."""
    ref_a = detect_container(a)
    ref_b = detect_container(b)
    if ref_a != ref_b:
        return False
    if ref_a.kind == CONTAINER_POPOVER:
        parent_a = a.parent.location if a.parent else None
        parent_b = b.parent.location if b.parent else None
        return parent_a == parent_b
    return True


def is_cross_container(a: GridCell, b: GridCell) -> bool:
    return not same_container(a, b)
