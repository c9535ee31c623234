"""
Hotbar Kernel — Notifications

Two outbound channels:

  StateChannel — "state changed" events for the rendering layer, with a typed
                 payload naming the affected locations and the revision that
                 produced them.
  Notifier     — user-facing warn/info messages. Fire-and-forget; never
                 affects control flow.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from hotbar.kernel.types import SlotLocation

logger = logging.getLogger(__name__)

CHANGE_KINDS: set[str] = {"state", "cell", "container", "clear", "config", "view", "migration"}


@dataclass(frozen=True)
class StateChange:
    kind: str
    owner_id: str | None
    revision: int
    locations: tuple[SlotLocation, ...] = field(default_factory=tuple)
    containers: tuple[tuple[str, int], ...] = field(default_factory=tuple)


Subscriber = Callable[[StateChange], Awaitable[None] | None]


class StateChannel:
    """Explicit publish/subscribe for state changes."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, change: StateChange) -> None:
        for callback in list(self._subscribers):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("channel: subscriber failed for %s change", change.kind)


# ---------------------------------------------------------------------------
# User-facing notification sink
# ---------------------------------------------------------------------------


class Notifier:
    """Abstract user-facing message sink."""

    def warn(self, message: str) -> None:
        raise NotImplementedError

    def info(self, message: str) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Routes user messages to the log. Default when no UI sink is wired."""

    def warn(self, message: str) -> None:
        logger.warning("notify: %s", message)

    def info(self, message: str) -> None:
        logger.info("notify: %s", message)


class MemoryNotifier(Notifier):
    """Collects messages in memory for testing."""

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.infos: list[str] = []

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def info(self, message: str) -> None:
        self.infos.append(message)
