"""
Hotbar Kernel — Schema Migration

Linear, one-directional upgrades of the persisted state document:

  legacy flags  →  v1 unified document  →  v2 (views)

- Legacy flags: before unification, hotbar / weaponSets / quickAccess /
  activeSet were stored as separate values. The oldest hotbar format is a
  bare list of grids (the "hotbarData" flag).
- v1: one document, no views.
- v2: the v1 hotbar is wrapped into a single default view; weapon sets and
  quick access stay outside any view.

Pure functions. migrate_document() never raises: any anomaly falls back to
the default scaffold.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from hotbar.kernel.config import settings
from hotbar.kernel.models import StateDocument, UnifiedV1Document
from hotbar.kernel.state import (
    CURRENT_VERSION,
    DEFAULT_VIEW_ID,
    default_hotbar,
    default_quick_access,
    default_state,
    default_weapon_sets,
    make_view,
    repair_invariants,
)
from hotbar.kernel.types import make_slot_key

logger = logging.getLogger(__name__)

# Separate per-owner stores used before the unified document existed
LEGACY_HOTBAR_KEYS: tuple[str, ...] = ("hotbarData", "hotbar")
LEGACY_KEYS: tuple[str, ...] = ("hotbarData", "hotbar", "weaponSets", "quickAccess", "activeSet")

# Pre-unification record field names → current names
_LEGACY_RECORD_FIELDS: dict[str, str] = {
    "uuid": "referenceId",
    "name": "displayName",
    "img": "imageRef",
    "type": "kind",
}


@dataclass
class MigrationResult:
    """
    Outcome of migrate_document().

    source is one of: "new", "legacy", "v1", "current", "fallback".
    migrated is True when the result differs from what is stored and should
    be written back.
    """

    state: dict[str, Any]
    source: str
    migrated: bool = False
    delete_legacy: bool = False
    fixes: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Shape helpers
# ---------------------------------------------------------------------------


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value >= 0:
        return value
    return default


def normalize_record(record: Any) -> dict[str, Any] | None:
    """Rename pre-unification record fields; recurse into nested grids."""
    if not isinstance(record, dict):
        return None
    out = dict(record)
    for old, new in _LEGACY_RECORD_FIELDS.items():
        if old in out and new not in out:
            out[new] = out.pop(old)
    nested = out.get("containerGrid")
    if isinstance(nested, dict):
        out["containerGrid"] = normalize_grid(nested, 3, 5, legacy_records=True)
    return out


def normalize_items(items: Any, cols: int, *, legacy_records: bool = False) -> dict[str, Any]:
    """
    Coerce an items collection into a slotKey → record map.

    List-valued items (a historical quick-access shape) keep an entry's own
    "slotKey" when present; otherwise the entry takes its row-major position.
    """
    if isinstance(items, dict):
        if not legacy_records:
            return dict(items)
        return {k: normalize_record(v) for k, v in items.items()}

    if not isinstance(items, list):
        return {}

    width = cols if cols > 0 else 1
    result: dict[str, Any] = {}
    for i, entry in enumerate(items):
        if not isinstance(entry, dict):
            continue
        record = dict(entry)
        key = record.pop("slotKey", None)
        if not isinstance(key, str):
            key = make_slot_key(i % width, i // width)
        result[key] = normalize_record(record) if legacy_records else record
    return result


def normalize_grid(grid: Any, rows: int, cols: int, *, legacy_records: bool = False) -> dict[str, Any]:
    if not isinstance(grid, dict):
        return {"rows": rows, "cols": cols, "items": {}}
    g_rows = _as_int(grid.get("rows"), rows)
    g_cols = _as_int(grid.get("cols"), cols)
    return {
        "rows": g_rows,
        "cols": g_cols,
        "items": normalize_items(grid.get("items", {}), g_cols, legacy_records=legacy_records),
    }


def normalize_quick_access(value: Any, *, legacy_records: bool = False) -> dict[str, Any]:
    """
    Canonicalize quick access to {"grids": [...]}.

    Historically it was stored as a single grid object, sometimes with an
    array of items. Items are converted to a map before wrapping.
    """
    rows, cols = settings.QUICK_ACCESS_ROWS, settings.QUICK_ACCESS_COLS
    if isinstance(value, dict) and isinstance(value.get("grids"), list):
        grids = [normalize_grid(g, rows, cols, legacy_records=legacy_records) for g in value["grids"]]
        return {"grids": grids} if grids else default_quick_access()
    if isinstance(value, dict) and ("items" in value or "rows" in value or "cols" in value):
        return {"grids": [normalize_grid(value, rows, cols, legacy_records=legacy_records)]}
    return default_quick_access()


def _legacy_hotbar(value: Any) -> dict[str, Any]:
    if isinstance(value, dict) and isinstance(value.get("grids"), list):
        grids = value["grids"]
    elif isinstance(value, list):
        grids = value
    else:
        return default_hotbar()
    normalized = [
        normalize_grid(g, settings.GRID_ROWS, settings.GRID_COLS, legacy_records=True) for g in grids
    ]
    return {"grids": normalized} if normalized else default_hotbar()


def _legacy_weapon_sets(value: Any, active_set: Any) -> dict[str, Any]:
    if isinstance(value, dict) and isinstance(value.get("sets"), list):
        sets = value["sets"]
        if active_set is None:
            active_set = value.get("activeSet")
    elif isinstance(value, list):
        sets = value
    else:
        sets = []
    normalized = [
        normalize_grid(s, settings.WEAPON_SET_ROWS, settings.WEAPON_SET_COLS, legacy_records=True) for s in sets
    ]
    if not normalized:
        result = default_weapon_sets()
    else:
        result = {"sets": normalized, "activeSet": 0}
    index = _as_int(active_set, 0)
    result["activeSet"] = index if index < len(result["sets"]) else 0
    return result


# ---------------------------------------------------------------------------
# Migration steps
# ---------------------------------------------------------------------------


def has_legacy_data(legacy: dict[str, Any] | None) -> bool:
    return bool(legacy) and any(legacy.get(k) is not None for k in LEGACY_KEYS)


def migrate_legacy(legacy: dict[str, Any]) -> dict[str, Any]:
    """Separate legacy stores → version 1 unified document."""
    hotbar_value = next((legacy[k] for k in LEGACY_HOTBAR_KEYS if legacy.get(k) is not None), None)
    return {
        "version": 1,
        "hotbar": _legacy_hotbar(hotbar_value),
        "weaponSets": _legacy_weapon_sets(legacy.get("weaponSets"), legacy.get("activeSet")),
        "quickAccess": normalize_quick_access(legacy.get("quickAccess"), legacy_records=True),
    }


def migrate_v1_to_v2(document: dict[str, Any]) -> dict[str, Any]:
    """Wrap the v1 hotbar into a single default view."""
    hotbar = copy.deepcopy(document.get("hotbar") or default_hotbar())
    return {
        "version": 2,
        "hotbar": hotbar,
        "weaponSets": copy.deepcopy(document.get("weaponSets") or default_weapon_sets()),
        "quickAccess": normalize_quick_access(document.get("quickAccess")),
        "views": {
            "list": [make_view(DEFAULT_VIEW_ID, settings.DEFAULT_VIEW_NAME, hotbar=hotbar)],
            "activeViewId": DEFAULT_VIEW_ID,
        },
    }


def _fallback(reason: str) -> MigrationResult:
    logger.warning("migrations: falling back to default state: %s", reason)
    return MigrationResult(state=default_state(), source="fallback", fixes=[reason])


def _finish(state: dict[str, Any], source: str, migrated: bool, delete_legacy: bool = False) -> MigrationResult:
    try:
        StateDocument.model_validate(state)
    except ValidationError as e:
        return _fallback(f"{source} document failed validation: {e.error_count()} error(s)")
    fixes = repair_invariants(state)
    return MigrationResult(
        state=state,
        source=source,
        migrated=migrated or bool(fixes),
        delete_legacy=delete_legacy,
        fixes=fixes,
    )


def migrate_document(document: Any, legacy: dict[str, Any] | None = None) -> MigrationResult:
    """
    Bring whatever is stored for an owner up to CURRENT_VERSION.

    - No document, no legacy data → fresh default scaffold (nothing to write).
    - No document, legacy data    → legacy → v1 → v2, legacy stores deleted.
    - v1 document                 → v2.
    - Current document            → used as-is after the quick-access shape fix.
    - Anything else               → default scaffold.
    """
    if document is None:
        if has_legacy_data(legacy):
            v1 = migrate_legacy(legacy or {})
            return _finish(migrate_v1_to_v2(v1), "legacy", migrated=True, delete_legacy=True)
        return MigrationResult(state=default_state(), source="new")

    if not isinstance(document, dict):
        return _fallback(f"unexpected document type {type(document).__name__}")

    version = document.get("version")
    if version is None and "hotbar" in document:
        version = 1
    if isinstance(version, bool) or not isinstance(version, int):
        return _fallback(f"unreadable version {version!r}")
    if version > CURRENT_VERSION:
        return _fallback(f"document version {version} is newer than {CURRENT_VERSION}")

    if version < CURRENT_VERSION:
        try:
            UnifiedV1Document.model_validate({**document, "version": version})
        except ValidationError as e:
            return _fallback(f"v1 document failed validation: {e.error_count()} error(s)")
        return _finish(migrate_v1_to_v2(document), "v1", migrated=True, delete_legacy=has_legacy_data(legacy))

    state = copy.deepcopy(document)
    state["quickAccess"] = normalize_quick_access(state.get("quickAccess"))
    reshaped = state["quickAccess"] != document.get("quickAccess")
    return _finish(state, "current", migrated=reshaped, delete_legacy=has_legacy_data(legacy))
