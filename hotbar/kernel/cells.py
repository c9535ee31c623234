"""
Live cell handles.

A GridCell is the in-memory object a rendered slot is backed by. Its
`context` is the structural ancestry of the slot (outermost container
first), which is what the resolver classifies. set_data() is the
optimistic visual update: it changes the handle and lets the renderer
repaint through on_change, without touching durable state.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from hotbar.kernel.types import ContainerRef, SlotLocation, make_slot_key


@dataclass
class ParentCell:
    """The real top-level cell whose record embeds a nested popover grid."""

    location: SlotLocation
    cell: GridCell | None = None


@dataclass(eq=False)
class GridCell:
    col: int
    row: int
    data: dict[str, Any] | None = None
    grid_index: int = 0
    context: tuple[ContainerRef, ...] = ()
    parent: ParentCell | None = None
    on_change: Callable[[GridCell], Awaitable[None] | None] | None = field(default=None, repr=False)

    @property
    def slot_key(self) -> str:
        return make_slot_key(self.col, self.row)

    @property
    def is_empty(self) -> bool:
        return not self.data

    async def set_data(self, data: dict[str, Any] | None) -> None:
        self.data = data
        if self.on_change is not None:
            result = self.on_change(self)
            if inspect.isawaitable(result):
                await result
