"""Tests for the JSON-file state and brand stores."""

from __future__ import annotations

import json

from brand_stock_monitor.state import BrandStore, StateStore
from brand_stock_monitor.stock import BrandStatus


class TestStateStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert StateStore(tmp_path / "state.json").load() == {}

    def test_round_trip(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        state = {"Acme": BrandStatus.OOS, "Bolt": BrandStatus.IN_STOCK, "Café Noir": BrandStatus.OOS}

        store.save(state)

        assert store.load() == state

    def test_file_is_plain_json(self, tmp_path):
        path = tmp_path / "state.json"
        StateStore(path).save({"Acme": BrandStatus.OOS})
        assert json.loads(path.read_text(encoding="utf-8")) == {"Acme": "OOS"}

    def test_save_overwrites_whole_file(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        store.save({"Acme": BrandStatus.OOS, "Bolt": BrandStatus.OOS})
        store.save({"Acme": BrandStatus.IN_STOCK})
        assert store.load() == {"Acme": BrandStatus.IN_STOCK}

    def test_set_updates_one_brand(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        store.save({"Acme": BrandStatus.OOS})
        store.set("Bolt", BrandStatus.IN_STOCK)
        assert store.as_dict() == {"Acme": "OOS", "Bolt": "IN_STOCK"}

    def test_no_temp_files_left_behind(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        store.save({"Acme": BrandStatus.OOS})
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_corrupt_file_is_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        assert StateStore(path).load() == {}

    def test_unknown_status_values_are_dropped(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"Acme": "OOS", "Bolt": "MAYBE"}), encoding="utf-8")
        assert StateStore(path).load() == {"Acme": BrandStatus.OOS}


class TestBrandStore:
    def test_defaults_when_file_missing(self, tmp_path):
        store = BrandStore(tmp_path / "brands.json", ["Acme", "Bolt"])
        assert store.load() == ["Acme", "Bolt"]

    def test_file_overrides_defaults(self, tmp_path):
        store = BrandStore(tmp_path / "brands.json", ["Acme"])
        store.save(["Bellroy", "Eagle Creek", "  "])
        assert store.load() == ["Bellroy", "Eagle Creek"]
        assert json.loads((tmp_path / "brands.json").read_text()) == {"brands": ["Bellroy", "Eagle Creek"]}

    def test_membership_is_exact(self, tmp_path):
        store = BrandStore(tmp_path / "brands.json", ["Jansport"])
        assert "Jansport" in store
        assert "JanSport" not in store
        assert "Jansport " not in store
