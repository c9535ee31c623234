"""
Interaction Coordinator

Turns clicks and drag/drop gestures on cells into validated state
transitions. The only drag state is the remembered source cell; a new
drag start overwrites it and drag end clears it.

Every mutating path follows the same order:
  extract data → validate → visual update → two-handed recompute → persist

Validation rejections abort before anything changes and are reported to the
user through the notifier. The coordinator never writes state directly; all
persistence goes through the store's update operations.

Document lifecycle events (created, updated, deleted) keep placed records in
step with the documents they point to, for any owner: the bound store is used
for the current owner, a one-off store for everyone else.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any

from hotbar.kernel.adapters import HostBridge, SystemAdapter, call_hook, transform_document
from hotbar.kernel.cells import GridCell, ParentCell
from hotbar.kernel.channel import LoggingNotifier, Notifier
from hotbar.kernel.config import settings
from hotbar.kernel.layout import fill_empty_slots, rearrange_grid
from hotbar.kernel.popover import NestedPopover, reconcile_contents
from hotbar.kernel.resolver import (
    detect_container,
    is_exclusive_set,
    is_inactive_exclusive_set,
    is_nested_popover,
    location_of,
    same_container,
)
from hotbar.kernel.state import active_set_index
from hotbar.kernel.store import HotbarStore
from hotbar.kernel.types import (
    CONTAINER_POPOVER,
    MACRO_KIND,
    WEAPON_SET,
    ContainerRef,
    Document,
    OwnerHandle,
    SlotLocation,
)

logger = logging.getLogger(__name__)

# Rejection reasons
INACTIVE_SET = "INACTIVE_SET"
SLOT_LOCKED = "SLOT_LOCKED"
DUPLICATE_REFERENCE = "DUPLICATE_REFERENCE"
POPOVER_BOUNDARY = "POPOVER_BOUNDARY"
OWNER_MISMATCH = "OWNER_MISMATCH"
BLOCKED = "BLOCKED"
UNRESOLVED = "UNRESOLVED"
NO_OWNER = "NO_OWNER"
EMPTY = "EMPTY"
SAME_CELL = "SAME_CELL"
UNAVAILABLE = "UNAVAILABLE"
NO_SPACE = "NO_SPACE"

MSG_DUPLICATE = "This item is already in the hotbar"
MSG_DUPLICATE_ELSEWHERE = "This item already exists elsewhere in the hotbar"
MSG_INACTIVE_SET = "That weapon set is not active"
MSG_SLOT_LOCKED = "That slot is locked"
MSG_POPOVER_BOUNDARY = "Items can't be moved directly between a container and the hotbar"
MSG_NO_OWNER = "No owner selected"


@dataclass
class DragPayload:
    """
    What a drop event carries. source_slot is set for cell-to-cell drags;
    reference_id for documents dragged in from outside.
    """

    source_slot: SlotLocation | None = None
    reference_id: str | None = None
    kind: str | None = None


@dataclass
class InteractionResult:
    accepted: bool
    reason: str | None = None
    action: str | None = None
    count: int = 0

    @classmethod
    def ok(cls, action: str, count: int = 0) -> InteractionResult:
        return cls(accepted=True, action=action, count=count)

    @classmethod
    def reject(cls, reason: str) -> InteractionResult:
        return cls(accepted=False, reason=reason)


class InteractionCoordinator:
    """Routes cell interactions to the adapter and coordinates persistence."""

    def __init__(
        self,
        store: HotbarStore,
        host: HostBridge,
        adapter: SystemAdapter | None = None,
        notifier: Notifier | None = None,
    ):
        self.store = store
        self.host = host
        self.adapter = adapter
        self.notifier = notifier or LoggingNotifier()
        self.drag_source: GridCell | None = None
        self.popover: NestedPopover | None = None

    def rebind(self, adapter: SystemAdapter | None) -> None:
        """Late adapter registration."""
        self.adapter = adapter

    # -- helpers --

    def _active_set(self) -> int:
        state = self.store.cached_state
        return active_set_index(state) if state else 0

    def _in_inactive_set(self, cell: GridCell) -> bool:
        return is_inactive_exclusive_set(cell, self._active_set())

    def _is_locked(self, cell: GridCell) -> bool:
        if self.adapter is None or self.adapter.is_slot_locked is None:
            return False
        return bool(self.adapter.is_slot_locked(cell))

    def _reject(self, reason: str, message: str | None = None) -> InteractionResult:
        if message:
            self.notifier.warn(message)
        logger.info("coordinator: rejected (%s)", reason)
        return InteractionResult.reject(reason)

    async def _notify_two_handed(self, *cells: GridCell) -> None:
        """Exclusive-set occupancy changed; let the system recompute equipment."""
        if self.adapter is None or self.adapter.on_exclusive_set_cell_updated is None:
            return
        for cell in cells:
            if is_exclusive_set(cell):
                ref = detect_container(cell)
                await call_hook(self.adapter.on_exclusive_set_cell_updated, ref.index, cell.slot_key)

    async def _persist(self, cell: GridCell) -> bool:
        loc = location_of(cell)
        parent = cell.parent if loc.container == CONTAINER_POPOVER else None
        data = copy.deepcopy(cell.data) if cell.data else None
        return await self.store.update_cell(loc.container, loc.container_index, loc.slot_key, data, parent)

    # -- click --

    async def handle_click(self, cell: GridCell) -> InteractionResult:
        """Execute a macro, open a container's popover, or use the item."""
        await self.store.load()
        if self._in_inactive_set(cell):
            return InteractionResult.reject(INACTIVE_SET)
        if cell.is_empty:
            return InteractionResult.reject(EMPTY)

        record = cell.data
        owner = self.host.current_owner()

        if record.get("kind") == MACRO_KIND:
            await self.host.execute_macro(record, owner)
            return InteractionResult.ok("execute")

        if self.adapter is not None and await call_hook(self.adapter.is_container, record, default=False):
            popover = await self.open_popover(cell)
            if popover is None:
                return InteractionResult.reject(UNRESOLVED)
            return InteractionResult.ok("popover")

        if self.adapter is not None and self.adapter.use_item is not None:
            await call_hook(self.adapter.use_item, cell, owner)
            return InteractionResult.ok("use")

        logger.info("coordinator: no click handler for %s", location_of(cell))
        return InteractionResult.reject(UNAVAILABLE)

    async def open_popover(self, cell: GridCell) -> NestedPopover | None:
        """Open the nested grid of a container item, reconciled with its contents."""
        record = cell.data or {}
        reference_id = record.get("referenceId")
        document = await self.host.resolve_reference(reference_id) if reference_id else None
        if document is None:
            logger.warning("coordinator: container %s could not be resolved", reference_id)
            return None

        fresh = None
        if self.adapter is not None:
            fresh = await call_hook(self.adapter.get_container_contents, document, self.host.current_owner())
        if fresh is None:
            logger.warning("coordinator: adapter does not provide container contents")
            fresh = {}

        grid = reconcile_contents(record.get("containerGrid"), fresh)
        # the live cell reads the reconciled grid; the store copy changes on write
        cell.data = {**record, "containerGrid": grid}
        self.popover = NestedPopover(ParentCell(location_of(cell), cell), grid)
        return self.popover

    def close_popover(self) -> None:
        self.popover = None

    # -- drag --

    def handle_drag_start(self, cell: GridCell) -> bool:
        """Remember the drag source. Returns False when the drag is refused."""
        if self._in_inactive_set(cell):
            logger.info("coordinator: drag from inactive weapon set refused")
            return False
        self.drag_source = cell
        return True

    def handle_drag_end(self, cell: GridCell | None = None) -> None:
        self.drag_source = None

    async def handle_drop(self, target: GridCell, payload: DragPayload) -> InteractionResult:
        """Route a drop to the internal (cell to cell) or external path."""
        await self.store.load()
        if self._in_inactive_set(target):
            return self._reject(INACTIVE_SET, MSG_INACTIVE_SET)
        if self._is_locked(target):
            return self._reject(SLOT_LOCKED, MSG_SLOT_LOCKED)

        if payload.source_slot is not None and self.drag_source is not None:
            remembered = location_of(self.drag_source)
            if remembered != payload.source_slot:
                logger.warning(
                    "coordinator: drop names source %s but the remembered drag source is %s",
                    payload.source_slot,
                    remembered,
                )
                return InteractionResult.reject(UNRESOLVED)
            return await self._internal_drop(target)
        return await self._external_drop(target, payload)

    async def _internal_drop(self, target: GridCell) -> InteractionResult:
        source = self.drag_source
        if source is None:
            return InteractionResult.reject(UNRESOLVED)
        if source is target:
            return InteractionResult.reject(SAME_CELL)

        in_popover = is_nested_popover(source)
        if in_popover != is_nested_popover(target):
            return self._reject(POPOVER_BOUNDARY, MSG_POPOVER_BOUNDARY)

        # STEP 1: capture current data before any changes
        source_data = source.data
        target_data = target.data
        source_loc = location_of(source)
        target_loc = location_of(target)
        # same container swaps; across containers the source moves and
        # replaces whatever the target held
        swap = same_container(source, target)

        # STEP 2: uniqueness; exclusive sets are exempt as destinations
        if not in_popover:
            target_ref = (target_data or {}).get("referenceId")
            if swap and target_ref and not is_exclusive_set(source):
                existing = self.store.find_reference(
                    target_ref,
                    exclude_container=target_loc.container,
                    exclude_container_index=target_loc.container_index,
                    exclude_slot_key=target_loc.slot_key,
                )
                if existing is not None:
                    logger.info("coordinator: %s conflict during swap at %s", target_ref, existing)
                    return self._reject(DUPLICATE_REFERENCE, MSG_DUPLICATE_ELSEWHERE)

            source_ref = (source_data or {}).get("referenceId")
            if not swap and source_ref and not is_exclusive_set(target):
                existing = self.store.find_reference(
                    source_ref,
                    exclude_container=source_loc.container,
                    exclude_container_index=source_loc.container_index,
                    exclude_slot_key=source_loc.slot_key,
                )
                if existing is not None:
                    logger.info("coordinator: %s conflict during move at %s", source_ref, existing)
                    return self._reject(DUPLICATE_REFERENCE, MSG_DUPLICATE_ELSEWHERE)

        logger.info(
            "coordinator: %s %s -> %s",
            "swap" if swap else "move",
            source_loc,
            target_loc,
        )

        # STEP 3: visual state, both cells at once
        await asyncio.gather(
            source.set_data(target_data if swap else None),
            target.set_data(source_data),
        )

        # STEP 4: two-handed recompute before the (possibly slow) save
        await self._notify_two_handed(source, target)

        # STEP 5: persist both cells
        await self._persist(source)
        await self._persist(target)
        return InteractionResult.ok("swap" if swap else "move")

    async def _external_drop(self, target: GridCell, payload: DragPayload) -> InteractionResult:
        if not payload.reference_id:
            logger.warning("coordinator: drop carried no source slot or reference")
            return InteractionResult.reject(UNRESOLVED)

        # STEP 1: resolve the dragged document
        document = await self.host.resolve_reference(payload.reference_id)
        if document is None:
            logger.warning("coordinator: could not resolve %s", payload.reference_id)
            return InteractionResult.reject(UNRESOLVED)

        # STEP 2: ownership and placement rules (macros belong to no one)
        if document.kind != MACRO_KIND:
            owner = self.host.current_owner()
            if owner is None:
                return self._reject(NO_OWNER, MSG_NO_OWNER)
            if document.owner_id is not None and document.owner_id != owner.id:
                logger.info("coordinator: owner mismatch %s vs %s", document.owner_id, owner.id)
                return self._reject(OWNER_MISMATCH, f"{document.name or 'This item'} belongs to someone else")
            if self.adapter is not None and await call_hook(self.adapter.is_blocked, document, default=False):
                return self._reject(BLOCKED, f"{document.name or 'This item'} can't be placed on the hotbar")

        # STEP 3: transform into a cell record
        record = await transform_document(self.adapter, document)
        if not record:
            logger.warning("coordinator: could not transform %s", document.reference_id)
            return InteractionResult.reject(UNRESOLVED)
        record.setdefault("referenceId", document.reference_id)

        # STEP 4: global uniqueness (exclusive sets and popovers are exempt)
        if not is_exclusive_set(target) and not is_nested_popover(target):
            existing = self.store.find_reference(record["referenceId"])
            if existing is not None:
                logger.info("coordinator: %s already at %s", record["referenceId"], existing)
                return self._reject(DUPLICATE_REFERENCE, MSG_DUPLICATE)

        # STEP 5: visual, recompute, persist
        await target.set_data(record)
        await self._notify_two_handed(target)
        await self._persist(target)
        logger.info("coordinator: placed %s at %s", record["referenceId"], location_of(target))
        return InteractionResult.ok("place")

    # -- removal --

    async def remove_cell(self, cell: GridCell) -> InteractionResult:
        await self.store.load()
        if cell.is_empty:
            return InteractionResult.reject(EMPTY)
        logger.info("coordinator: removing item from %s", location_of(cell))
        await cell.set_data(None)
        await self._notify_two_handed(cell)
        await self._persist(cell)
        return InteractionResult.ok("remove")

    # -- document lifecycle --

    def _store_for(self, owner_id: str | None) -> HotbarStore | None:
        """The bound store for the current owner, a one-off store for anyone else."""
        if not owner_id:
            return None
        if self.store.owner is not None and self.store.owner.id == owner_id:
            return self.store
        other = HotbarStore(self.store.storage, channel=self.store.channel)
        other.bind_owner(OwnerHandle(id=owner_id))
        return other

    async def _recompute_sets(self, store: HotbarStore, locations: list[SlotLocation]) -> None:
        if store is not self.store or self.adapter is None or self.adapter.on_exclusive_set_cell_updated is None:
            return
        for loc in locations:
            if loc.container == WEAPON_SET:
                await call_hook(self.adapter.on_exclusive_set_cell_updated, loc.container_index, loc.slot_key)

    async def handle_document_created(self, document: Document) -> InteractionResult:
        """Auto-add a newly created document to the first free slot of its hotbar grid."""
        store = self._store_for(document.owner_id)
        if store is None:
            return InteractionResult.reject(NO_OWNER)
        if self.adapter is not None and await call_hook(self.adapter.is_blocked, document, default=False):
            logger.info("coordinator: %s is blocked from auto-add", document.reference_id)
            return InteractionResult.reject(BLOCKED)
        if self.adapter is not None and self.adapter.should_auto_add is not None:
            wanted = await call_hook(self.adapter.should_auto_add, document)
        else:
            wanted = settings.AUTO_ADD_ITEMS
        if not wanted:
            return InteractionResult.reject(UNAVAILABLE)

        await store.load()
        existing = store.find_reference(document.reference_id)
        if existing is not None:
            logger.info("coordinator: skipping auto-add of %s, already at %s", document.reference_id, existing)
            return InteractionResult.reject(DUPLICATE_REFERENCE)

        record = await transform_document(self.adapter, document)
        if not record:
            logger.warning("coordinator: could not transform %s", document.reference_id)
            return InteractionResult.reject(UNRESOLVED)
        record.setdefault("referenceId", document.reference_id)

        grid_index = 0
        if self.adapter is not None:
            grid_index = await call_hook(self.adapter.preferred_grid, document, default=0) or 0
        location = await store.place_reference(record, grid_index)
        if location is None:
            return InteractionResult.reject(NO_SPACE)
        return InteractionResult.ok("place", 1)

    async def handle_document_updated(self, document: Document) -> InteractionResult:
        """Refresh every placed copy of an updated document with freshly transformed data."""
        store = self._store_for(document.owner_id)
        if store is None:
            return InteractionResult.reject(NO_OWNER)
        await store.load()
        if store.find_reference(document.reference_id) is None:
            return InteractionResult.reject(EMPTY)

        record = await transform_document(self.adapter, document)
        if not record:
            logger.warning("coordinator: could not transform %s", document.reference_id)
            return InteractionResult.reject(UNRESOLVED)
        refreshed = await store.refresh_reference(document.reference_id, record)
        if not refreshed:
            return InteractionResult.reject(EMPTY)
        await self._recompute_sets(store, refreshed)
        return InteractionResult.ok("refresh", len(refreshed))

    async def handle_document_deleted(self, reference_id: str, owner_id: str | None) -> InteractionResult:
        """Drop a deleted document from every container that holds it."""
        store = self._store_for(owner_id)
        if store is None:
            return InteractionResult.reject(NO_OWNER)
        removed = await store.remove_reference(reference_id)
        if not removed:
            return InteractionResult.reject(EMPTY)
        if store is self.store and self.popover is not None and self.popover.parent.location in removed:
            self.close_popover()
        await self._recompute_sets(store, removed)
        return InteractionResult.ok("remove", len(removed))

    # -- whole-container operations --

    def _container_grid(self, ref: ContainerRef) -> tuple[dict[str, Any] | None, ParentCell | None]:
        if ref.kind == CONTAINER_POPOVER:
            if self.popover is None:
                return None, None
            return self.popover.grid, self.popover.parent
        return self.store.get_container(ref.kind, ref.index), None

    async def _commit_container(self, ref: ContainerRef, items: dict[str, Any], parent: ParentCell | None) -> bool:
        saved = await self.store.update_container(ref.kind, ref.index, items, parent)
        if saved and ref.kind == CONTAINER_POPOVER and self.popover is not None:
            self.popover.grid["items"] = dict(items)
            for cell in self.popover.cells:
                await cell.set_data(items.get(cell.slot_key))
        return saved

    async def sort_container(self, ref: ContainerRef) -> InteractionResult:
        """Order records with the adapter's sort, then lay them out row-major."""
        if self.adapter is None or self.adapter.sort_items is None:
            return self._reject(UNAVAILABLE, "Sorting is not available")
        await self.store.load()
        grid, parent = self._container_grid(ref)
        if grid is None:
            logger.warning("coordinator: no container %s[%s] to sort", ref.kind, ref.index)
            return InteractionResult.reject(UNRESOLVED)

        records = [copy.deepcopy(r) for r in grid["items"].values() if r and r.get("referenceId")]
        if not records:
            return self._reject(EMPTY, "No items to sort")

        ordered = await call_hook(self.adapter.sort_items, records)
        # re-read: the grid may have been resized while the adapter ran
        grid, parent = self._container_grid(ref)
        if grid is None:
            return InteractionResult.reject(UNRESOLVED)
        items = rearrange_grid(ordered or records, grid["rows"], grid["cols"])
        await self._commit_container(ref, items, parent)
        return InteractionResult.ok("sort", len(items))

    async def auto_populate_container(self, ref: ContainerRef) -> InteractionResult:
        """Fill empty slots with the owner's matching documents not already placed."""
        if self.adapter is None or self.adapter.matching_items is None:
            return self._reject(UNAVAILABLE, "Auto-populate is not available")
        owner = self.host.current_owner()
        if owner is None:
            return self._reject(NO_OWNER, MSG_NO_OWNER)
        await self.store.load()

        documents = await call_hook(self.adapter.matching_items, owner, ref) or []
        records: list[dict[str, Any]] = []
        seen: set[str] = set()
        for document in documents:
            if document.reference_id in seen or self.store.find_reference(document.reference_id):
                continue
            record = await transform_document(self.adapter, document)
            if record:
                record.setdefault("referenceId", document.reference_id)
                records.append(record)
                seen.add(document.reference_id)

        if self.adapter.sort_items is not None and records:
            records = await call_hook(self.adapter.sort_items, records) or records

        # other handlers may have placed some of these while we awaited
        records = [r for r in records if self.store.find_reference(r["referenceId"]) is None]
        if not records:
            self.notifier.info("All matching items are already in the hotbar")
            return InteractionResult.reject(EMPTY)

        grid, parent = self._container_grid(ref)
        if grid is None:
            logger.warning("coordinator: no container %s[%s] to populate", ref.kind, ref.index)
            return InteractionResult.reject(UNRESOLVED)
        items, placed = fill_empty_slots(grid["items"], records, grid["rows"], grid["cols"])
        await self._commit_container(ref, items, parent)
        logger.info("coordinator: auto-populated %s item(s) into %s[%s]", placed, ref.kind, ref.index)
        return InteractionResult.ok("populate", placed)

    async def clear_container(self, ref: ContainerRef) -> InteractionResult:
        await self.store.load()
        grid, parent = self._container_grid(ref)
        if grid is None:
            logger.warning("coordinator: no container %s[%s] to clear", ref.kind, ref.index)
            return InteractionResult.reject(UNRESOLVED)
        cleared = [key for key, record in grid.get("items", {}).items() if record]
        await self._commit_container(ref, {}, parent)
        # recompute against the emptied set
        if ref.kind == WEAPON_SET and self.adapter is not None and self.adapter.on_exclusive_set_cell_updated:
            for key in cleared:
                await call_hook(self.adapter.on_exclusive_set_cell_updated, ref.index, key)
        return InteractionResult.ok("clear")
