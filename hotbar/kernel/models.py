"""Pydantic models for the persisted hotbar state document.

Used at the load boundary to decide whether an on-disk document can be
trusted. In-memory state stays a plain dict tree.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CellRecordModel(BaseModel):
    """One occupied cell. Adapters add arbitrary extra fields (uses, quantity...)."""

    model_config = ConfigDict(extra="allow")

    referenceId: str | None = None
    displayName: str | None = None
    imageRef: str | None = None
    kind: str | None = None
    containerGrid: GridModel | None = None


class GridModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    rows: int = Field(ge=0)
    cols: int = Field(ge=0)
    items: dict[str, CellRecordModel | None] = Field(default_factory=dict)


class HotbarModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    grids: list[GridModel]


class WeaponSetsModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    sets: list[GridModel] = Field(min_length=1)
    activeSet: int = Field(default=0, ge=0)


class QuickAccessModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    grids: list[GridModel]


class HotbarStateModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    hotbar: HotbarModel


class ViewModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    name: str
    icon: str | None = None
    hotbarState: HotbarStateModel


class ViewsModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    entries: list[ViewModel] = Field(alias="list", min_length=1)
    activeViewId: str


class StateDocument(BaseModel):
    """A current-version (v2) state document."""

    model_config = ConfigDict(extra="allow")

    version: int
    hotbar: HotbarModel
    weaponSets: WeaponSetsModel
    quickAccess: QuickAccessModel
    views: ViewsModel


class UnifiedV1Document(BaseModel):
    """The first unified document: one tree, no views yet."""

    model_config = ConfigDict(extra="allow")

    version: int
    hotbar: HotbarModel
    weaponSets: WeaponSetsModel | None = None
    quickAccess: Any = None


CellRecordModel.model_rebuild()
GridModel.model_rebuild()
