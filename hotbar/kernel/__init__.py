"""
Hotbar Kernel — state store and interaction engine.

Three components:
  store        — versioned, migratable state document per owner (cache,
                 serialized saves, self-echo suppression, views)
  resolver     — (cell) → container kind/index  (pure, priority ordered)
  coordinator  — click and drag/drop gestures → validated state transitions

Supporting modules:
  migrations   — legacy flags → v1 → v2
  layout       — column resize, sort and auto-populate placement
  popover      — nested container grids embedded in a parent cell
"""

from hotbar.kernel.adapters import HostBridge, MemoryHost, SystemAdapter
from hotbar.kernel.cells import GridCell, ParentCell
from hotbar.kernel.channel import MemoryNotifier, StateChange, StateChannel
from hotbar.kernel.coordinator import DragPayload, InteractionCoordinator, InteractionResult
from hotbar.kernel.migrations import migrate_document
from hotbar.kernel.resolver import detect_container
from hotbar.kernel.state import CURRENT_VERSION, default_state
from hotbar.kernel.storage import HotbarStorage, MemoryStorage
from hotbar.kernel.store import HotbarStore

__all__ = [
    "HotbarStore",
    "HotbarStorage",
    "MemoryStorage",
    "migrate_document",
    "default_state",
    "CURRENT_VERSION",
    "detect_container",
    "GridCell",
    "ParentCell",
    "InteractionCoordinator",
    "DragPayload",
    "InteractionResult",
    "HostBridge",
    "MemoryHost",
    "SystemAdapter",
    "StateChannel",
    "StateChange",
    "MemoryNotifier",
]
