"""
Hotbar Kernel — State Store

Owns the canonical state tree for the bound owner. Sits between the pure
helpers (state, migrations) and durable storage.

Operations: bind_owner, load, save, update_cell, update_container,
update_grid_config, apply_column_resize, set_active_set, clear_all,
place_reference, refresh_reference, remove_reference,
find_reference, and view management.

Every update is a read-modify-write against the cached tree: load (cache hit
or durable read), mutate synchronously, then save. Nothing awaits between
the read and the mutation.

Failure policy:
- Storage errors raised while saving propagate to the caller.
- Stale references (missing grid, unknown kind, empty parent cell,
  out-of-bounds slot) are logged and the update becomes a no-op.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from hotbar.kernel.cells import ParentCell
from hotbar.kernel.channel import StateChange, StateChannel
from hotbar.kernel.config import settings
from hotbar.kernel.layout import first_free_slot
from hotbar.kernel.migrations import LEGACY_KEYS, migrate_document
from hotbar.kernel.popover import DEFAULT_POPOVER_COLS, DEFAULT_POPOVER_ROWS
from hotbar.kernel.state import (
    active_view,
    default_hotbar,
    default_state,
    find_view,
    get_container,
    iter_containers,
    make_view,
    prune_items,
    sync_active_view,
)
from hotbar.kernel.storage import GM_HOTBAR_SETTING, GM_LEGACY_SETTING, HotbarStorage
from hotbar.kernel.types import (
    CONTAINER_POPOVER,
    HOTBAR,
    TOP_LEVEL_KINDS,
    WEAPON_SET,
    OwnerHandle,
    PathHop,
    SlotLocation,
    is_valid_slot_key,
    slot_path,
)

logger = logging.getLogger(__name__)

# How many of our own revisions to remember for exact self-write detection
_OWN_REVISION_HISTORY = 64


class HotbarStore:
    """
    Persistence manager for one owner at a time.
    Serializes durable writes; keeps a write-through in-memory cache.
    """

    def __init__(
        self,
        storage: HotbarStorage,
        *,
        channel: StateChannel | None = None,
        echo_window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._storage = storage
        self.channel = channel or StateChannel()
        self._echo_window = settings.SELF_ECHO_WINDOW if echo_window is None else echo_window
        self._clock = clock
        self._owner: OwnerHandle | None = None
        self._state: dict[str, Any] | None = None
        self._save_lock = asyncio.Lock()
        self._last_save_at: float | None = None
        self.revision = 0
        self._own_revisions: deque[int] = deque(maxlen=_OWN_REVISION_HISTORY)

    @property
    def owner(self) -> OwnerHandle | None:
        return self._owner

    @property
    def storage(self) -> HotbarStorage:
        return self._storage

    @property
    def cached_state(self) -> dict[str, Any] | None:
        return self._state

    # -- owner --

    def bind_owner(self, owner: OwnerHandle | None) -> None:
        """Switch owner context. The next read goes back to durable storage."""
        self._owner = owner
        self._state = None

    # -- load --

    async def load(self) -> dict[str, Any]:
        """
        Return the bound owner's state, migrating and persisting older
        documents first. Cached until the owner changes.
        """
        if self._state is not None:
            return self._state

        owner = self._owner
        if owner is None:
            logger.info("store: no owner bound, using default state")
            self._state = default_state()
            return self._state

        document, legacy = await self._read(owner)
        result = migrate_document(document, legacy)
        for fix in result.fixes:
            logger.warning("store: owner %s: %s", owner.id, fix)

        if self._owner is not owner:
            # Rebound while reading; don't cache or write for a stale owner
            return result.state

        if result.migrated:
            logger.info("store: migrated %s document for owner %s", result.source, owner.id)
            await self.save(result.state, owner=owner, kind="migration")
        if result.delete_legacy:
            await self._delete_legacy(owner)

        if self._owner is not owner:
            return result.state
        self._state = result.state
        return self._state

    async def _load_for_update(self) -> tuple[OwnerHandle | None, dict[str, Any] | None]:
        """
        Load for a read-modify-write. The owner is captured before the read;
        if it changes while loading, the state is None and the update must
        be dropped.
        """
        owner = self._owner
        state = await self.load()
        if self._owner is not owner:
            logger.warning(
                "store: owner changed from %s during load, dropping update",
                owner.id if owner else None,
            )
            return owner, None
        return owner, state

    async def _read(self, owner: OwnerHandle) -> tuple[Any, dict[str, Any]]:
        if owner.is_global:
            document = await self._storage.get_setting(GM_HOTBAR_SETTING)
            legacy = await self._storage.get_setting(GM_LEGACY_SETTING) or {}
            return document, legacy
        document = await self._storage.get_document(owner.id)
        legacy = await self._storage.get_legacy(owner.id)
        return document, legacy

    async def _write(self, owner: OwnerHandle, snapshot: dict[str, Any]) -> None:
        if owner.is_global:
            await self._storage.put_setting(GM_HOTBAR_SETTING, snapshot)
        else:
            await self._storage.put_document(owner.id, snapshot)

    async def _delete_legacy(self, owner: OwnerHandle) -> None:
        if owner.is_global:
            await self._storage.put_setting(GM_LEGACY_SETTING, None)
        else:
            await self._storage.delete_legacy(owner.id, list(LEGACY_KEYS))
        logger.info("store: removed legacy flags for owner %s", owner.id)

    # -- save --

    async def save(
        self,
        state: dict[str, Any],
        *,
        owner: OwnerHandle | None = None,
        kind: str = "state",
        locations: Iterable[SlotLocation] = (),
        containers: Iterable[tuple[str, int]] = (),
    ) -> None:
        """
        Persist the full state document for `owner` (the bound owner by default).

        The cache is updated immediately when `owner` is still the bound
        owner. Durable writes are serialized: a save issued while another is
        in flight waits for it, so writes land in issuance order. Storage
        errors propagate.
        """
        owner = owner or self._owner
        if owner is None:
            logger.warning("store: no owner bound, not saving")
            return

        if owner is self._owner:
            self._state = state
        snapshot = copy.deepcopy(state)

        async with self._save_lock:
            await self._write(owner, snapshot)
            self._last_save_at = self._clock()
            self.revision += 1
            revision = self.revision
            self._own_revisions.append(revision)

        await self.channel.publish(
            StateChange(
                kind=kind,
                owner_id=owner.id,
                revision=revision,
                locations=tuple(locations),
                containers=tuple(containers),
            )
        )

    def should_skip_reload(self) -> bool:
        """True if a local save completed within the self-echo window."""
        if self._last_save_at is None:
            return False
        return (self._clock() - self._last_save_at) < self._echo_window

    def is_own_revision(self, revision: int) -> bool:
        """Exact self-write detection for notifications carrying a revision."""
        return revision in self._own_revisions

    # -- navigation --

    def _resolve_grid(
        self,
        state: dict[str, Any],
        path: list[PathHop],
        nested_template: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        Walk a hop path to the grid holding the leaf slot.

        Intermediate hops step into the record at that slot and then into its
        embedded containerGrid, created on first write from the live parent's
        grid when one is open.
        """
        head = path[0]
        if head.kind not in TOP_LEVEL_KINDS:
            logger.warning("store: unknown container kind %r", head.kind)
            return None
        grid = get_container(state, head.kind, head.index)
        if grid is None:
            logger.warning("store: no %s grid at index %s", head.kind, head.index)
            return None

        at = head
        for hop in path[1:]:
            record = grid["items"].get(at.slot_key)
            if not record:
                logger.warning(
                    "store: parent cell %s[%s].%s has no data, cannot write nested slot %s",
                    at.kind,
                    at.index,
                    at.slot_key,
                    hop.slot_key,
                )
                return None
            nested = record.get("containerGrid")
            if not isinstance(nested, dict):
                template = nested_template or {}
                nested = {
                    "rows": template.get("rows", DEFAULT_POPOVER_ROWS),
                    "cols": template.get("cols", DEFAULT_POPOVER_COLS),
                    "items": copy.deepcopy(template.get("items") or {}),
                }
                record["containerGrid"] = nested
            if not isinstance(nested.get("items"), dict):
                nested["items"] = {}
            grid = nested
            at = hop
        return grid

    def get_container(self, kind: str, index: int) -> dict[str, Any] | None:
        """Cached top-level grid lookup. Call load() first."""
        if self._state is None:
            return None
        return get_container(self._state, kind, index)

    # -- cells --

    async def update_cell(
        self,
        container: str,
        container_index: int,
        slot_key: str,
        data: dict[str, Any] | None,
        parent_cell: ParentCell | None = None,
    ) -> bool:
        """
        Set (or clear, with data=None) one cell and persist.

        For CONTAINER_POPOVER the write goes into the parent record's
        containerGrid; parent_cell must identify the owning top-level cell.
        Returns False when the update was a no-op.
        """
        owner, state = await self._load_for_update()
        if state is None:
            return False
        location = SlotLocation(container, container_index, slot_key)
        path = slot_path(location, parent_cell.location if parent_cell else None)
        if not path:
            logger.warning("store: nested write to %s without a parent cell", location)
            return False

        live_parent = parent_cell.cell if parent_cell else None
        template = (live_parent.data or {}).get("containerGrid") if live_parent else None
        grid = self._resolve_grid(state, path, template)
        if grid is None:
            return False
        if not is_valid_slot_key(slot_key, grid.get("rows", 0), grid.get("cols", 0)):
            logger.warning(
                "store: slot %s out of bounds for %sx%s grid at %s",
                slot_key,
                grid.get("rows"),
                grid.get("cols"),
                location,
            )
            return False

        if data is None:
            grid["items"].pop(slot_key, None)
        else:
            grid["items"][slot_key] = data

        if len(path) > 1 and live_parent is not None:
            self._mirror_into_parent(live_parent.data, grid, slot_key, data)

        sync_active_view(state)
        persisted = parent_cell.location if len(path) > 1 else location
        await self.save(state, owner=owner, kind="cell", locations=(persisted,))
        logger.info("store: updated %s", location if len(path) == 1 else f"{persisted} -> {slot_key}")
        return True

    @staticmethod
    def _mirror_into_parent(
        live: dict[str, Any] | None,
        grid: dict[str, Any],
        slot_key: str,
        data: dict[str, Any] | None,
    ) -> None:
        """Keep the live parent cell's embedded grid in step with the stored one."""
        if live is None:
            return
        live_grid = live.get("containerGrid")
        if live_grid is grid:
            return
        if not isinstance(live_grid, dict):
            live_grid = live["containerGrid"] = {"rows": grid["rows"], "cols": grid["cols"], "items": {}}
        items = live_grid.setdefault("items", {})
        if data is None:
            items.pop(slot_key, None)
        else:
            items[slot_key] = data

    # -- containers --

    async def update_container(
        self,
        container_type: str,
        container_index: int,
        items: dict[str, Any],
        parent_cell: ParentCell | None = None,
    ) -> bool:
        """Replace a container's whole items map (sort, auto-populate, clear)."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        if container_type == CONTAINER_POPOVER:
            if parent_cell is None:
                logger.warning("store: popover container update without a parent cell")
                return False
            p = parent_cell.location
            path = [PathHop(p.container, p.container_index, p.slot_key), PathHop(CONTAINER_POPOVER, 0, "0-0")]
            live_parent = parent_cell.cell
            template = (live_parent.data or {}).get("containerGrid") if live_parent else None
            grid = self._resolve_grid(state, path, template)
        else:
            grid = self._resolve_grid(state, [PathHop(container_type, container_index, "0-0")])
        if grid is None:
            return False

        grid["items"] = {k: v for k, v in items.items() if v}
        dropped = prune_items(grid)
        if dropped:
            logger.warning("store: %s[%s] dropped out-of-bounds slots %s", container_type, container_index, dropped)

        if container_type == CONTAINER_POPOVER and parent_cell and parent_cell.cell and parent_cell.cell.data:
            parent_cell.cell.data["containerGrid"] = copy.deepcopy(grid)

        sync_active_view(state)
        await self.save(state, owner=owner, kind="container", containers=((container_type, container_index),))
        return True

    async def update_grid_config(self, grid_index: int, rows: int | None = None, cols: int | None = None) -> bool:
        """Resize one hotbar grid. Items outside the new bounds are dropped."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        grid = get_container(state, HOTBAR, grid_index)
        if grid is None:
            logger.warning("store: invalid grid index %s", grid_index)
            return False
        if rows is not None:
            grid["rows"] = max(0, rows)
        if cols is not None:
            grid["cols"] = max(0, cols)
        dropped = prune_items(grid)
        if dropped:
            logger.warning("store: hotbar[%s] resize dropped slots %s", grid_index, dropped)
        sync_active_view(state)
        await self.save(state, owner=owner, kind="config", containers=((HOTBAR, grid_index),))
        return True

    async def apply_column_resize(self, index: int, left_cols: int, right_cols: int) -> bool:
        """
        Commit a drag-bar gesture between hotbar grids index and index + 1.
        The pair's column total must be unchanged.
        """
        owner, state = await self._load_for_update()
        if state is None:
            return False
        left = get_container(state, HOTBAR, index)
        right = get_container(state, HOTBAR, index + 1)
        if left is None or right is None:
            logger.warning("store: no adjacent hotbar grids at %s/%s", index, index + 1)
            return False
        total = left["cols"] + right["cols"]
        if left_cols < 0 or right_cols < 0 or left_cols + right_cols != total:
            logger.warning(
                "store: resize %s+%s does not conserve %s columns of grids %s/%s",
                left_cols,
                right_cols,
                total,
                index,
                index + 1,
            )
            return False

        left["cols"] = left_cols
        right["cols"] = right_cols
        for i, grid in ((index, left), (index + 1, right)):
            dropped = prune_items(grid)
            if dropped:
                logger.warning("store: hotbar[%s] resize dropped slots %s", i, dropped)

        sync_active_view(state)
        await self.save(state, owner=owner, kind="config", containers=((HOTBAR, index), (HOTBAR, index + 1)))
        return True

    async def set_active_set(self, index: int) -> bool:
        """Make weapon set `index` the active one."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        sets = state["weaponSets"]["sets"]
        if not isinstance(index, int) or not 0 <= index < len(sets):
            logger.warning("store: invalid weapon set index %s", index)
            return False
        state["weaponSets"]["activeSet"] = index
        await self.save(state, owner=owner, kind="config", containers=((WEAPON_SET, index),))
        return True

    async def clear_all(self) -> bool:
        """Empty every hotbar, weapon set and quick access grid."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        touched = []
        for kind, index, grid in iter_containers(state):
            grid["items"] = {}
            touched.append((kind, index))
        sync_active_view(state)
        await self.save(state, owner=owner, kind="clear", containers=touched)
        return True

    # -- item lifecycle --

    async def place_reference(self, record: dict[str, Any], grid_index: int = 0) -> SlotLocation | None:
        """
        Put a record into the first free slot (row-major) of a hotbar grid.
        Returns None when the reference is already placed or the grid is full.
        """
        owner, state = await self._load_for_update()
        if state is None:
            return None
        reference_id = record.get("referenceId")
        existing = self.find_reference(reference_id)
        if existing is not None:
            logger.info("store: %s already at %s, not placing", reference_id, existing)
            return None
        grid = get_container(state, HOTBAR, grid_index)
        if grid is None:
            logger.warning("store: invalid grid index %s", grid_index)
            return None
        slot_key = first_free_slot(grid["items"], grid["rows"], grid["cols"])
        if slot_key is None:
            logger.info("store: no free slot in hotbar[%s] for %s", grid_index, reference_id)
            return None

        grid["items"][slot_key] = record
        location = SlotLocation(HOTBAR, grid_index, slot_key)
        sync_active_view(state)
        await self.save(state, owner=owner, kind="cell", locations=(location,))
        logger.info("store: placed %s at %s", reference_id, location)
        return location

    async def refresh_reference(self, reference_id: str, record: dict[str, Any]) -> list[SlotLocation]:
        """
        Replace every placed copy of reference_id with a fresh record.
        A saved containerGrid survives unless the new record carries one.
        """
        owner, state = await self._load_for_update()
        if state is None:
            return []
        refreshed = []
        for kind, index, grid in iter_containers(state):
            for slot, current in grid["items"].items():
                if not current or current.get("referenceId") != reference_id:
                    continue
                fresh = dict(record, referenceId=reference_id)
                if "containerGrid" in current and "containerGrid" not in fresh:
                    fresh["containerGrid"] = current["containerGrid"]
                grid["items"][slot] = fresh
                refreshed.append(SlotLocation(kind, index, slot))
        if not refreshed:
            return []
        sync_active_view(state)
        await self.save(state, owner=owner, kind="cell", locations=refreshed)
        logger.info("store: refreshed %s at %s slot(s)", reference_id, len(refreshed))
        return refreshed

    async def remove_reference(self, reference_id: str) -> list[SlotLocation]:
        """Clear every slot holding reference_id, in all top-level containers."""
        owner, state = await self._load_for_update()
        if state is None:
            return []
        removed = []
        for kind, index, grid in iter_containers(state):
            for slot in [k for k, v in grid["items"].items() if v and v.get("referenceId") == reference_id]:
                del grid["items"][slot]
                removed.append(SlotLocation(kind, index, slot))
        if not removed:
            return []
        sync_active_view(state)
        await self.save(state, owner=owner, kind="cell", locations=removed)
        logger.info("store: removed %s from %s", reference_id, ", ".join(str(loc) for loc in removed))
        return removed

    # -- lookup --

    def find_reference(
        self,
        reference_id: str | None,
        *,
        exclude_container: str | None = None,
        exclude_container_index: int | None = None,
        exclude_slot_key: str | None = None,
    ) -> SlotLocation | None:
        """
        Find where a referenceId lives in the cached state, skipping the
        excluded location. Synchronous; callers must load() first.
        """
        if self._state is None:
            logger.warning("store: find_reference called before load")
            return None
        if not reference_id:
            return None
        for kind, index, grid in iter_containers(self._state):
            for slot, record in (grid.get("items") or {}).items():
                if not record or record.get("referenceId") != reference_id:
                    continue
                if kind == exclude_container and index == exclude_container_index and slot == exclude_slot_key:
                    continue
                return SlotLocation(kind, index, slot)
        return None

    # -- views --

    async def list_views(self) -> list[dict[str, Any]]:
        state = await self.load()
        return state["views"]["list"]

    async def active_view(self) -> dict[str, Any] | None:
        state = await self.load()
        return active_view(state)

    async def create_view(self, name: str, icon: str | None = None) -> str | None:
        """Add a view with an empty hotbar and make it active."""
        owner, state = await self._load_for_update()
        if state is None:
            return None
        sync_active_view(state)
        view_id = f"view_{uuid.uuid4().hex[:12]}"
        view = make_view(view_id, name, icon, hotbar=default_hotbar())
        state["views"]["list"].append(view)
        state["views"]["activeViewId"] = view_id
        state["hotbar"] = copy.deepcopy(view["hotbarState"]["hotbar"])
        await self.save(state, owner=owner, kind="view")
        logger.info("store: created view %s (%s)", view_id, name)
        return view_id

    async def delete_view(self, view_id: str) -> bool:
        """Delete a view. The last remaining view can't be deleted."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        views = state["views"]
        view = find_view(state, view_id)
        if view is None:
            logger.warning("store: no view %s to delete", view_id)
            return False
        if len(views["list"]) <= 1:
            logger.warning("store: refusing to delete the last view %s", view_id)
            return False

        if views["activeViewId"] == view_id:
            fallback = next(v for v in views["list"] if v["id"] != view_id)
            views["activeViewId"] = fallback["id"]
            state["hotbar"] = copy.deepcopy(fallback["hotbarState"]["hotbar"])

        views["list"].remove(view)
        await self.save(state, owner=owner, kind="view")
        logger.info("store: deleted view %s", view_id)
        return True

    async def switch_view(self, view_id: str) -> bool:
        """Store the live hotbar into the current view, then load the target's."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        target = find_view(state, view_id)
        if target is None:
            logger.warning("store: no view %s to switch to", view_id)
            return False
        sync_active_view(state)
        state["views"]["activeViewId"] = view_id
        state["hotbar"] = copy.deepcopy(target["hotbarState"]["hotbar"])
        await self.save(state, owner=owner, kind="view")
        return True

    async def rename_view(self, view_id: str, name: str, icon: str | None = None) -> bool:
        owner, state = await self._load_for_update()
        if state is None:
            return False
        view = find_view(state, view_id)
        if view is None:
            logger.warning("store: no view %s to rename", view_id)
            return False
        view["name"] = name
        if icon is not None:
            view["icon"] = icon
        await self.save(state, owner=owner, kind="view")
        return True

    async def duplicate_view(self, view_id: str, name: str | None = None) -> str | None:
        """Copy a view (hotbar included). The copy is not activated."""
        owner, state = await self._load_for_update()
        if state is None:
            return None
        source = find_view(state, view_id)
        if source is None:
            logger.warning("store: no view %s to duplicate", view_id)
            return None
        if state["views"]["activeViewId"] == view_id:
            sync_active_view(state)
        new_id = f"view_{uuid.uuid4().hex[:12]}"
        copy_view = make_view(
            new_id,
            name or f"{source['name']} (Copy)",
            source.get("icon"),
            hotbar=source["hotbarState"]["hotbar"],
        )
        state["views"]["list"].append(copy_view)
        await self.save(state, owner=owner, kind="view")
        return new_id

    async def update_view(self, view_id: str | None = None) -> bool:
        """Push the live hotbar into a view's storage (the active one by default)."""
        owner, state = await self._load_for_update()
        if state is None:
            return False
        target_id = view_id or state["views"]["activeViewId"]
        view = find_view(state, target_id)
        if view is None:
            logger.warning("store: no view %s to update", target_id)
            return False
        view["hotbarState"] = {"hotbar": copy.deepcopy(state["hotbar"])}
        await self.save(state, owner=owner, kind="view")
        return True
