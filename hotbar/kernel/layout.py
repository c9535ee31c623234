"""
Grid layout math — drag-bar column resizing and slot placement.

System-agnostic. Sort order and population heuristics belong to the
adapter; where records land in the grid is decided here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hotbar.kernel.config import settings
from hotbar.kernel.types import iter_slot_keys


@dataclass
class ColumnResize:
    """
    One drag-bar gesture between adjacent hotbar grids.

    The column total of the two grids is fixed when the gesture starts:
    left + right == total for every intermediate and final state.
    """

    original_left: int
    original_right: int
    left: int = field(init=False)
    right: int = field(init=False)

    def __post_init__(self) -> None:
        self.left = self.original_left
        self.right = self.original_right

    @property
    def total(self) -> int:
        return self.original_left + self.original_right

    def update(self, delta_cols: int) -> tuple[int, int]:
        """Move the bar by delta_cols from where the gesture started."""
        left = max(0, min(self.total, self.original_left + delta_cols))
        self.left = left
        self.right = self.total - left
        return self.left, self.right

    def update_pixels(self, delta_px: float, cell_width: int | None = None) -> tuple[int, int]:
        return self.update(columns_for_pixels(delta_px, cell_width))

    @property
    def changed(self) -> bool:
        return self.left != self.original_left


def columns_for_pixels(delta_px: float, cell_width: int | None = None) -> int:
    width = cell_width or settings.RESIZE_CELL_WIDTH
    # half away from zero
    cols = int(abs(delta_px) / width + 0.5)
    return cols if delta_px >= 0 else -cols


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------


def rearrange_grid(records: list[dict[str, Any]], rows: int, cols: int) -> dict[str, Any]:
    """
    Lay sorted records out left to right, then down.
    Records without a referenceId are dropped; overflow past the grid is dropped.
    """
    usable = [r for r in records if r and isinstance(r.get("referenceId"), str) and r["referenceId"]]
    items: dict[str, Any] = {}
    for key, record in zip(iter_slot_keys(rows, cols), usable):
        items[key] = record
    return items


def fill_empty_slots(
    items: dict[str, Any],
    records: list[dict[str, Any]],
    rows: int,
    cols: int,
) -> tuple[dict[str, Any], int]:
    """
    Place records into empty slots in grid order without moving existing ones.
    Returns (new items map, number placed).
    """
    result = dict(items)
    pending = iter(records)
    placed = 0
    for key in iter_slot_keys(rows, cols):
        if result.get(key):
            continue
        record = next(pending, None)
        if record is None:
            break
        result[key] = record
        placed += 1
    return result, placed


def first_free_slot(items: dict[str, Any], rows: int, cols: int) -> str | None:
    for key in iter_slot_keys(rows, cols):
        if not items.get(key):
            return key
    return None
