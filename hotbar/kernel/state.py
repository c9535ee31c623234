"""
Hotbar Kernel — State Document

Scaffolding and navigation helpers for the persisted state tree.

State = {
    "version":    int,
    "hotbar":     {"grids": [Grid]},
    "weaponSets": {"sets": [Grid], "activeSet": int},
    "quickAccess":{"grids": [Grid]},
    "views":      {"list": [View], "activeViewId": str},
}
Grid = {"rows": int, "cols": int, "items": {slotKey: CellRecord | None}}
View = {"id", "name", "icon", "hotbarState": {"hotbar": {"grids": [Grid]}}}

Views snapshot only the hotbar branch. Weapon sets and quick access are
shared by every view.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from typing import Any

from hotbar.kernel.config import settings
from hotbar.kernel.types import (
    HOTBAR,
    QUICK_ACCESS,
    WEAPON_SET,
    is_valid_slot_key,
)

logger = logging.getLogger(__name__)

CURRENT_VERSION = 2
DEFAULT_VIEW_ID = "default"
DEFAULT_VIEW_ICON = "fas fa-star"


# ---------------------------------------------------------------------------
# Scaffolding
# ---------------------------------------------------------------------------


def empty_grid(rows: int, cols: int) -> dict[str, Any]:
    return {"rows": rows, "cols": cols, "items": {}}


def default_hotbar() -> dict[str, Any]:
    return {"grids": [empty_grid(settings.GRID_ROWS, settings.GRID_COLS) for _ in range(settings.GRID_COUNT)]}


def default_weapon_sets() -> dict[str, Any]:
    return {
        "sets": [
            empty_grid(settings.WEAPON_SET_ROWS, settings.WEAPON_SET_COLS) for _ in range(settings.WEAPON_SET_COUNT)
        ],
        "activeSet": 0,
    }


def default_quick_access() -> dict[str, Any]:
    return {"grids": [empty_grid(settings.QUICK_ACCESS_ROWS, settings.QUICK_ACCESS_COLS)]}


def make_view(
    view_id: str,
    name: str,
    icon: str | None = None,
    hotbar: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": view_id,
        "name": name,
        "icon": icon or DEFAULT_VIEW_ICON,
        "hotbarState": {"hotbar": copy.deepcopy(hotbar) if hotbar is not None else default_hotbar()},
    }


def default_state() -> dict[str, Any]:
    """The scaffold for an owner with nothing saved yet."""
    hotbar = default_hotbar()
    return {
        "version": CURRENT_VERSION,
        "hotbar": hotbar,
        "weaponSets": default_weapon_sets(),
        "quickAccess": default_quick_access(),
        "views": {
            "list": [make_view(DEFAULT_VIEW_ID, settings.DEFAULT_VIEW_NAME, hotbar=hotbar)],
            "activeViewId": DEFAULT_VIEW_ID,
        },
    }


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


def container_list(state: dict[str, Any], kind: str) -> list[dict[str, Any]] | None:
    """The sibling list holding containers of `kind`, or None for unknown kinds."""
    if kind == HOTBAR:
        return state.setdefault("hotbar", {}).setdefault("grids", [])
    if kind == WEAPON_SET:
        return state.setdefault("weaponSets", {}).setdefault("sets", [])
    if kind == QUICK_ACCESS:
        return state.setdefault("quickAccess", {}).setdefault("grids", [])
    return None


def get_container(state: dict[str, Any], kind: str, index: int) -> dict[str, Any] | None:
    grids = container_list(state, kind)
    if grids is None or not isinstance(index, int) or not 0 <= index < len(grids):
        return None
    grid = grids[index]
    if not isinstance(grid.get("items"), dict):
        grid["items"] = {}
    return grid


def iter_containers(state: dict[str, Any]) -> Iterator[tuple[str, int, dict[str, Any]]]:
    """Yield (kind, index, grid) for every top-level container, hotbar first."""
    for kind in (HOTBAR, WEAPON_SET, QUICK_ACCESS):
        for index, grid in enumerate(container_list(state, kind) or []):
            yield kind, index, grid


def active_set_index(state: dict[str, Any]) -> int:
    return state.get("weaponSets", {}).get("activeSet", 0)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def find_view(state: dict[str, Any], view_id: str | None) -> dict[str, Any] | None:
    for view in state.get("views", {}).get("list", []):
        if view.get("id") == view_id:
            return view
    return None


def active_view(state: dict[str, Any]) -> dict[str, Any] | None:
    views = state.get("views", {})
    return find_view(state, views.get("activeViewId"))


def sync_active_view(state: dict[str, Any]) -> None:
    """Copy the live hotbar into the active view so views never go stale."""
    view = active_view(state)
    if view is None:
        logger.warning("state: no active view to sync")
        return
    view["hotbarState"] = {"hotbar": copy.deepcopy(state.get("hotbar", default_hotbar()))}


# ---------------------------------------------------------------------------
# Grid hygiene
# ---------------------------------------------------------------------------


def prune_items(grid: dict[str, Any]) -> list[str]:
    """
    Drop item keys that aren't valid coordinates for the grid's rows × cols.
    Returns the dropped keys.
    """
    items = grid.get("items")
    if not isinstance(items, dict):
        grid["items"] = {}
        return []
    rows = grid.get("rows", 0)
    cols = grid.get("cols", 0)
    dropped = [k for k in items if not is_valid_slot_key(k, rows, cols)]
    for key in dropped:
        del items[key]
    return dropped


def repair_invariants(state: dict[str, Any]) -> list[str]:
    """
    Bring a loaded document back within the structural invariants:
    valid slot keys, a valid active weapon set, at least one view and an
    active view id that resolves. Returns human-readable fixes applied.
    """
    fixes: list[str] = []

    for kind, index, grid in iter_containers(state):
        dropped = prune_items(grid)
        if dropped:
            fixes.append(f"{kind}[{index}]: dropped out-of-bounds slots {sorted(dropped)}")

    weapon_sets = state.setdefault("weaponSets", default_weapon_sets())
    sets = weapon_sets.setdefault("sets", [])
    if not sets:
        weapon_sets.update(default_weapon_sets())
        fixes.append("weaponSets: rebuilt empty set list")
    active = weapon_sets.get("activeSet")
    if not isinstance(active, int) or not 0 <= active < len(weapon_sets["sets"]):
        weapon_sets["activeSet"] = 0
        fixes.append(f"weaponSets: reset invalid activeSet {active!r}")

    views = state.setdefault("views", {})
    view_list = views.setdefault("list", [])
    if not view_list:
        view_list.append(make_view(DEFAULT_VIEW_ID, settings.DEFAULT_VIEW_NAME, hotbar=state.get("hotbar")))
        fixes.append("views: created default view")
    if find_view(state, views.get("activeViewId")) is None:
        views["activeViewId"] = view_list[0]["id"]
        fixes.append("views: reset dangling activeViewId")

    return fixes
