"""Tests for target storage and resolution."""

import json

import pytest

from services.errors import TargetValidationError
from services.targets import TargetResolver, TargetStore


@pytest.fixture
def store(tmp_path):
    return TargetStore(str(tmp_path))


def write(tmp_path, name, data):
    (tmp_path / name).write_text(json.dumps(data))


class TestTargetStore:

    def test_missing_files_are_empty(self, store):
        assert store.customer_targets() == {}
        assert store.sprint_targets() == []
        assert store.sprint_target(1) is None

    def test_invalid_json_is_empty(self, store, tmp_path):
        (tmp_path / "customer-targets.json").write_text("{not json")
        assert store.customer_targets() == {}

    def test_reads_customer_targets(self, store, tmp_path):
        write(tmp_path, "customer-targets.json", [
            {"customer": "Acme", "targetSP": 40},
            {"customer": "Zero", "targetSP": 0},
            {"customer": "", "targetSP": 10}
        ])
        assert store.customer_targets() == {"Acme": 40}

    def test_save_customer_targets_sorted(self, store, tmp_path):
        store.save_customer_targets([
            {"customer": "globex", "targetSP": 10},
            {"customer": "Acme", "targetSP": 40}
        ])
        saved = json.loads((tmp_path / "customer-targets.json").read_text())
        assert [t["customer"] for t in saved] == ["Acme", "globex"]

    @pytest.mark.parametrize("payload", [
        {"customer": "Acme"},
        [{"customer": "Acme", "targetSP": "40"}],
        [{"targetSP": 40}],
        [{"customer": "Acme", "targetSP": True}],
    ])
    def test_save_customer_targets_validates(self, store, payload):
        with pytest.raises(TargetValidationError):
            store.save_customer_targets(payload)

    def test_save_sprint_target_upserts(self, store):
        store.save_sprint_target({"sprintId": 5, "targetPoints": 30, "sprintName": "S5"})
        store.save_sprint_target({"sprintId": 9, "targetPoints": 50})
        store.save_sprint_target({"sprintId": 5, "targetPoints": 35, "customers": ["Acme"]})

        targets = store.sprint_targets()
        assert [t.sprint_id for t in targets] == [9, 5]
        assert targets[1].target_points == 35
        assert targets[1].customers == ["Acme"]
        assert targets[1].saved_at

    def test_save_sprint_target_requires_fields(self, store):
        with pytest.raises(TargetValidationError):
            store.save_sprint_target({"sprintId": 5})


class TestTargetResolver:
    """Three-tier fallback."""

    @pytest.fixture
    def resolver(self, store, tmp_path):
        write(tmp_path, "customer-targets.json", [
            {"customer": "Acme", "targetSP": 40},
            {"customer": "Globex", "targetSP": 25}
        ])
        write(tmp_path, "sprint-targets.json", [
            {"sprintId": 7, "targetPoints": 90, "customers": ["Acme"], "savedAt": "2024-01-01"}
        ])
        return TargetResolver(store)

    def test_customer_filter_uses_customer_target(self, resolver):
        assert resolver.resolve_target(7, "Acme", ["Acme"], 12) == (40, "customer")

    def test_customer_filter_without_target_uses_total(self, resolver):
        assert resolver.resolve_target(7, "Initech", ["Initech"], 12) == (12, "total")

    def test_saved_sprint_target(self, resolver):
        """A recorded sprint target wins over current customer targets."""
        assert resolver.resolve_target(7, None, ["Acme", "Globex"]) == (90, "historical")

    def test_sums_customer_targets(self, resolver):
        """Customers without a target contribute nothing."""
        assert resolver.resolve_target(8, None, ["Acme", "Globex", "Initech"]) == (65, "calculated")

    def test_no_configuration(self, store):
        assert TargetResolver(store).resolve_target(8, None, ["Acme"]) == (0, "calculated")
