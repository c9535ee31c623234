"""
Schema migration: legacy flags → v1 → v2.

Migration must be idempotent and must never raise; anything unreadable
falls back to the default scaffold.
"""

import copy

from hotbar.kernel.migrations import (
    migrate_document,
    migrate_legacy,
    migrate_v1_to_v2,
    normalize_items,
    normalize_quick_access,
)
from hotbar.kernel.state import CURRENT_VERSION, DEFAULT_VIEW_ID, default_state


def legacy_flags():
    return {
        "hotbarData": [
            {
                "rows": 1,
                "cols": 5,
                "items": {"0-0": {"uuid": "Item.sword", "name": "Sword", "img": "sword.png", "type": "weapon"}},
            },
            {"rows": 1, "cols": 5, "items": {}},
        ],
        "weaponSets": {
            "sets": [
                {"rows": 1, "cols": 2, "items": {}},
                {"rows": 1, "cols": 2, "items": {"1-0": {"uuid": "Item.shield", "name": "Shield"}}},
            ],
        },
        "activeSet": 1,
        "quickAccess": {"rows": 2, "cols": 3, "items": [{"uuid": "Item.potion", "name": "Potion"}]},
    }


def v1_document():
    return {
        "version": 1,
        "hotbar": {"grids": [{"rows": 1, "cols": 5, "items": {"2-0": {"referenceId": "Item.bow"}}}]},
        "weaponSets": {"sets": [{"rows": 1, "cols": 2, "items": {}}], "activeSet": 0},
        "quickAccess": {"grids": [{"rows": 2, "cols": 3, "items": {}}]},
    }


class TestFreshOwner:
    def test_nothing_stored_gives_default_scaffold(self):
        result = migrate_document(None, {})
        assert result.source == "new"
        assert not result.migrated
        assert result.state == default_state()

    def test_default_scaffold_shape(self):
        state = migrate_document(None).state
        assert state["version"] == CURRENT_VERSION
        assert len(state["hotbar"]["grids"]) == 3
        assert all(g == {"rows": 1, "cols": 5, "items": {}} for g in state["hotbar"]["grids"])
        assert state["weaponSets"]["activeSet"] == 0
        assert [v["name"] for v in state["views"]["list"]] == ["Default"]
        assert state["views"]["activeViewId"] == DEFAULT_VIEW_ID


class TestLegacy:
    def test_legacy_flags_become_current(self):
        result = migrate_document(None, legacy_flags())
        assert result.source == "legacy"
        assert result.migrated
        assert result.delete_legacy
        assert result.state["version"] == CURRENT_VERSION

    def test_record_fields_are_renamed(self):
        state = migrate_document(None, legacy_flags()).state
        record = state["hotbar"]["grids"][0]["items"]["0-0"]
        assert record == {
            "referenceId": "Item.sword",
            "displayName": "Sword",
            "imageRef": "sword.png",
            "kind": "weapon",
        }

    def test_separate_active_set_flag_is_used(self):
        state = migrate_document(None, legacy_flags()).state
        assert state["weaponSets"]["activeSet"] == 1
        assert state["weaponSets"]["sets"][1]["items"]["1-0"]["referenceId"] == "Item.shield"

    def test_legacy_hotbar_is_wrapped_into_default_view(self):
        state = migrate_document(None, legacy_flags()).state
        views = state["views"]
        assert len(views["list"]) == 1
        assert views["activeViewId"] == DEFAULT_VIEW_ID
        assert views["list"][0]["hotbarState"]["hotbar"] == state["hotbar"]

    def test_list_quick_access_is_keyed(self):
        state = migrate_document(None, legacy_flags()).state
        grid = state["quickAccess"]["grids"][0]
        assert grid["items"]["0-0"]["referenceId"] == "Item.potion"

    def test_migrating_legacy_twice_is_stable(self):
        once = migrate_document(None, legacy_flags()).state
        again = migrate_document(None, legacy_flags()).state
        assert once == again

    def test_migrated_document_is_not_migrated_again(self):
        first = migrate_document(None, legacy_flags())
        second = migrate_document(copy.deepcopy(first.state), {})
        assert second.source == "current"
        assert not second.migrated
        assert second.state == first.state

    def test_oldest_format_bare_grid_list(self):
        v1 = migrate_legacy({"hotbar": [{"rows": 1, "cols": 3, "items": {}}]})
        assert v1["version"] == 1
        assert v1["hotbar"]["grids"] == [{"rows": 1, "cols": 3, "items": {}}]

    def test_nested_container_records_are_renamed(self):
        legacy = {
            "hotbarData": [
                {
                    "rows": 1,
                    "cols": 5,
                    "items": {
                        "0-0": {
                            "uuid": "Item.bag",
                            "containerGrid": {"rows": 2, "cols": 2, "items": {"1-1": {"uuid": "Item.rope"}}},
                        }
                    },
                }
            ]
        }
        state = migrate_document(None, legacy).state
        nested = state["hotbar"]["grids"][0]["items"]["0-0"]["containerGrid"]
        assert nested["items"]["1-1"] == {"referenceId": "Item.rope"}


class TestV1:
    def test_v1_gains_views(self):
        result = migrate_document(v1_document())
        assert result.source == "v1"
        assert result.migrated
        assert result.state["version"] == 2
        assert result.state["views"]["list"][0]["id"] == DEFAULT_VIEW_ID
        assert result.state["hotbar"]["grids"][0]["items"]["2-0"]["referenceId"] == "Item.bow"

    def test_unversioned_hotbar_document_is_treated_as_v1(self):
        doc = v1_document()
        del doc["version"]
        result = migrate_document(doc)
        assert result.source == "v1"
        assert result.state["version"] == 2

    def test_v1_step_does_not_touch_input(self):
        doc = v1_document()
        snapshot = copy.deepcopy(doc)
        migrate_v1_to_v2(doc)
        assert doc == snapshot

    def test_weapon_sets_stay_outside_views(self):
        state = migrate_document(v1_document()).state
        view = state["views"]["list"][0]
        assert set(view["hotbarState"]) == {"hotbar"}


class TestCurrent:
    def test_current_document_is_a_no_op(self):
        doc = default_state()
        doc["hotbar"]["grids"][1]["items"]["3-0"] = {"referenceId": "Item.axe"}
        result = migrate_document(copy.deepcopy(doc))
        assert result.source == "current"
        assert not result.migrated
        assert result.fixes == []
        assert result.state == doc

    def test_single_grid_quick_access_is_reshaped(self):
        doc = default_state()
        doc["quickAccess"] = {"rows": 2, "cols": 3, "items": {"1-1": {"referenceId": "Item.torch"}}}
        result = migrate_document(doc)
        assert result.migrated
        assert result.state["quickAccess"]["grids"][0]["items"]["1-1"]["referenceId"] == "Item.torch"

    def test_out_of_bounds_slots_are_dropped(self):
        doc = default_state()
        doc["hotbar"]["grids"][0]["items"]["9-0"] = {"referenceId": "Item.lost"}
        result = migrate_document(doc)
        assert "9-0" not in result.state["hotbar"]["grids"][0]["items"]
        assert result.migrated
        assert result.fixes

    def test_invalid_active_set_is_reset(self):
        doc = default_state()
        doc["weaponSets"]["activeSet"] = 7
        result = migrate_document(doc)
        assert result.state["weaponSets"]["activeSet"] == 0

    def test_dangling_active_view_is_reset(self):
        doc = default_state()
        doc["views"]["activeViewId"] = "gone"
        result = migrate_document(doc)
        assert result.state["views"]["activeViewId"] == DEFAULT_VIEW_ID


class TestFallback:
    def test_newer_version_falls_back(self):
        result = migrate_document({"version": 99, "hotbar": {"grids": []}})
        assert result.source == "fallback"
        assert result.state == default_state()

    def test_non_dict_falls_back(self):
        assert migrate_document("not a document").source == "fallback"

    def test_unreadable_version_falls_back(self):
        assert migrate_document({"version": "two"}).source == "fallback"

    def test_malformed_v1_falls_back(self):
        assert migrate_document({"version": 1, "hotbar": {"grids": "nope"}}).source == "fallback"

    def test_malformed_current_falls_back(self):
        doc = default_state()
        doc["views"]["list"] = []
        assert migrate_document(doc).source == "fallback"


class TestShapeHelpers:
    def test_list_items_keep_their_own_slot_key(self):
        items = normalize_items([{"slotKey": "2-1", "referenceId": "a"}, {"referenceId": "b"}], cols=3)
        assert items == {"2-1": {"referenceId": "a"}, "1-0": {"referenceId": "b"}}

    def test_quick_access_grids_pass_through(self):
        value = {"grids": [{"rows": 1, "cols": 1, "items": {}}]}
        assert normalize_quick_access(value) == value

    def test_missing_quick_access_gets_default(self):
        assert normalize_quick_access(None) == {"grids": [{"rows": 2, "cols": 3, "items": {}}]}
