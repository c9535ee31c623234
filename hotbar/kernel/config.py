"""
Hotbar kernel configuration — all environment variables in one place.

Read from environment at import time. Nothing here is required; a missing
DATABASE_URL only means the Postgres storage backend can't be used.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


class Settings:
    """Kernel settings from environment variables."""

    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Self-echo suppression: skip reloads triggered by our own recent save
    SELF_ECHO_WINDOW_MS: int = _int_env("HOTBAR_SELF_ECHO_WINDOW_MS", 500)

    # Default hotbar scaffold
    GRID_ROWS: int = _int_env("HOTBAR_GRID_ROWS", 1)
    GRID_COLS: int = _int_env("HOTBAR_GRID_COLS", 5)
    GRID_COUNT: int = _int_env("HOTBAR_GRID_COUNT", 3)

    # Exclusive (weapon) sets
    WEAPON_SET_COUNT: int = _int_env("HOTBAR_WEAPON_SET_COUNT", 3)
    WEAPON_SET_ROWS: int = _int_env("HOTBAR_WEAPON_SET_ROWS", 1)
    WEAPON_SET_COLS: int = _int_env("HOTBAR_WEAPON_SET_COLS", 2)

    # Quick access
    QUICK_ACCESS_ROWS: int = _int_env("HOTBAR_QUICK_ACCESS_ROWS", 2)
    QUICK_ACCESS_COLS: int = _int_env("HOTBAR_QUICK_ACCESS_COLS", 3)

    # Views
    DEFAULT_VIEW_NAME: str = os.environ.get("HOTBAR_DEFAULT_VIEW_NAME", "Default")

    # Drag bar: pixel width of one column (cell size + gap)
    RESIZE_CELL_WIDTH: int = _int_env("HOTBAR_RESIZE_CELL_WIDTH", 54)

    # Item lifecycle: add newly created items when the adapter has no opinion
    AUTO_ADD_ITEMS: bool = _bool_env("HOTBAR_AUTO_ADD_ITEMS", False)

    @property
    def SELF_ECHO_WINDOW(self) -> float:
        return self.SELF_ECHO_WINDOW_MS / 1000


# Singleton instance
settings = Settings()
