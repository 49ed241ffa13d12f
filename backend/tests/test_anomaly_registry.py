"""
Tests for AnomalyRegistry add/update/delete and its audit trail.

QC: every successful mutation appends exactly one log entry; failed
mutations leave anomalies and log untouched; provenance and id never
change after creation.
"""

import itertools
from datetime import datetime, timezone

import pytest

from transformer_inspection.anomalies import (
    Anomaly,
    AnomalyInput,
    AnomalyNotFoundError,
    AnomalyRegistry,
    AnomalyState,
    AnomalyValidationError,
    Provenance,
    RegistryOutcome,
)
from transformer_inspection.audit import AuditLogRecorder, LogAction


FIXED_NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"anomaly-{next(counter)}"


class TestAnomalyRegistryAdd:
    """Tests for AnomalyRegistry.add()."""

    def setup_method(self):
        self.registry = AnomalyRegistry(
            recorder=AuditLogRecorder(clock=lambda: FIXED_NOW),
            id_factory=sequential_ids(),
        )
        self.empty = AnomalyState()

    def test_get_on_empty_state_returns_empty_list(self):
        assert self.registry.get(self.empty) == []

    def test_add_generates_id_and_defaults_to_user(self):
        result = self.registry.add(self.empty, {"box": [1, 1, 3, 3], "class": "wear"})

        assert result.ok
        assert result.anomaly.id == "anomaly-1"
        assert result.anomaly.made_by == Provenance.USER
        assert result.anomaly.box == [1.0, 1.0, 3.0, 3.0]
        assert result.anomaly.confidence is None

    def test_add_grows_anomalies_and_log_by_one(self):
        state = self.registry.add(self.empty, {"box": [1, 1, 3, 3]}).state
        result = self.registry.add(state, {"box": [2, 2, 4, 4], "class": "crack"})

        assert len(result.state.anomalies) == len(state.anomalies) + 1
        assert len(result.state.log) == len(state.log) + 1
        assert result.state.log[-1].action == LogAction.ADD
        assert result.state.log[-1] == result.entry

    def test_add_entry_reflects_stored_record(self):
        result = self.registry.add(self.empty, {
            "box": [4, 5, 2, 2],
            "class": "oil leak",
            "confidence": 0.75,
        })

        entry = result.entry
        assert entry.id == result.anomaly.id
        assert entry.box == [4.0, 5.0, 2.0, 2.0]
        assert entry.class_name == "oil leak"
        assert entry.confidence == 0.75
        assert entry.made_by == "User"
        assert entry.timestamp == "2024-05-01T10:00:00.000Z"

    def test_add_keeps_supplied_id_and_provenance(self):
        result = self.registry.add(self.empty, {
            "id": "custom-id",
            "box": [1, 1, 1, 1],
            "madeBy": "AI",
        })

        assert result.anomaly.id == "custom-id"
        assert result.anomaly.made_by == Provenance.AI
        assert result.entry.made_by == "AI"

    def test_add_empty_id_is_generated(self):
        result = self.registry.add(self.empty, {"id": "", "box": [1, 1, 1, 1]})
        assert result.anomaly.id == "anomaly-1"

    def test_add_accepts_typed_input(self):
        payload = AnomalyInput(box=[1, 1, 2, 2], class_name="rust")
        result = self.registry.add(self.empty, payload)
        assert result.ok
        assert result.anomaly.class_name == "rust"

    def test_add_preserves_insertion_order(self):
        state = self.empty
        for i in range(3):
            state = self.registry.add(state, {"box": [i, i, 1, 1]}).state

        assert [a.id for a in self.registry.get(state)] == ["anomaly-1", "anomaly-2", "anomaly-3"]

    def test_generated_id_skips_ids_already_present(self):
        state = self.registry.add(self.empty, {"id": "anomaly-1", "box": [1, 1, 1, 1]}).state
        result = self.registry.add(state, {"box": [2, 2, 1, 1]})
        assert result.anomaly.id == "anomaly-2"

    def test_duplicate_supplied_id_rejected(self):
        state = self.registry.add(self.empty, {"id": "dup", "box": [1, 1, 1, 1]}).state
        result = self.registry.add(state, {"id": "dup", "box": [2, 2, 1, 1]})

        assert result.outcome == RegistryOutcome.VALIDATION_FAILURE
        assert result.state is state
        assert "already exists" in result.message

    @pytest.mark.parametrize("box", [
        [1, 2, 3],
        [1, 2, 3, 4, 5],
        [0, 0, -1, 2],
        [0, 0, 2, -1],
        [0, 0, float("inf"), 1],
    ])
    def test_malformed_box_is_validation_failure(self, box):
        result = self.registry.add(self.empty, {"box": box})

        assert result.outcome == RegistryOutcome.VALIDATION_FAILURE
        assert result.state is self.empty

    def test_missing_box_is_validation_failure(self):
        result = self.registry.add(self.empty, {"class": "wear"})
        assert result.outcome == RegistryOutcome.VALIDATION_FAILURE
        assert "box" in result.message

    def test_confidence_out_of_range_is_validation_failure(self):
        result = self.registry.add(self.empty, {"box": [1, 1, 1, 1], "confidence": 1.5})
        assert result.outcome == RegistryOutcome.VALIDATION_FAILURE

    def test_unwrap_raises_validation_error(self):
        result = self.registry.add(self.empty, {"box": [1]})
        with pytest.raises(AnomalyValidationError):
            result.unwrap()


class TestAnomalyRegistryUpdate:
    """Tests for AnomalyRegistry.update()."""

    def setup_method(self):
        self.registry = AnomalyRegistry(
            recorder=AuditLogRecorder(clock=lambda: FIXED_NOW),
            id_factory=sequential_ids(),
        )
        self.state = self.registry.add(AnomalyState(), {
            "id": "ai-1",
            "box": [5, 5, 10, 10],
            "class": "hotspot",
            "confidence": 0.8,
            "madeBy": "AI",
        }).state

    def test_update_replaces_supplied_fields(self):
        result = self.registry.update(self.state, "ai-1", {
            "box": [6, 6, 4, 4],
            "class": "loose joint",
            "confidence": 0.95,
        })

        assert result.ok
        updated = result.state.find("ai-1")
        assert updated.box == [6.0, 6.0, 4.0, 4.0]
        assert updated.class_name == "loose joint"
        assert updated.confidence == 0.95

    def test_update_keeps_omitted_fields(self):
        result = self.registry.update(self.state, "ai-1", {"class": "overheating"})

        updated = result.state.find("ai-1")
        assert updated.class_name == "overheating"
        assert updated.box == [5.0, 5.0, 10.0, 10.0]
        assert updated.confidence == 0.8

    def test_update_can_clear_confidence(self):
        result = self.registry.update(self.state, "ai-1", {"confidence": None})
        assert result.state.find("ai-1").confidence is None
        assert result.entry.confidence == 0.0

    def test_update_never_changes_provenance_or_id(self):
        result = self.registry.update(self.state, "ai-1", {
            "id": "hijacked",
            "madeBy": "User",
            "box": [1, 1, 1, 1],
        })

        assert result.ok
        assert result.state.find("hijacked") is None
        updated = result.state.find("ai-1")
        assert updated.made_by == Provenance.AI
        assert result.entry.id == "ai-1"
        assert result.entry.made_by == "AI"

    def test_update_appends_edit_entry_with_new_values(self):
        result = self.registry.update(self.state, "ai-1", {"box": [7, 7, 2, 2], "class": "crack"})

        assert len(result.state.log) == len(self.state.log) + 1
        entry = result.state.log[-1]
        assert entry.action == LogAction.EDIT
        assert entry.box == [7.0, 7.0, 2.0, 2.0]
        assert entry.class_name == "crack"
        assert entry.made_by == "AI"

    def test_update_keeps_position_in_display_order(self):
        state = self.registry.add(self.state, {"box": [1, 1, 1, 1]}).state
        result = self.registry.update(state, "ai-1", {"class": "changed"})

        assert [a.id for a in result.state.anomalies] == ["ai-1", "anomaly-1"]

    def test_update_unknown_id_leaves_state_unchanged(self):
        result = self.registry.update(self.state, "missing", {"class": "x"})

        assert result.outcome == RegistryOutcome.NOT_FOUND
        assert result.state is self.state
        assert result.state.anomalies == self.state.anomalies
        assert result.state.log == self.state.log

    def test_update_unknown_id_unwraps_to_not_found(self):
        result = self.registry.update(self.state, "missing", {"class": "x"})

        with pytest.raises(AnomalyNotFoundError) as exc_info:
            result.unwrap()
        assert exc_info.value.anomaly_id == "missing"

    def test_update_with_invalid_box_rejected(self):
        result = self.registry.update(self.state, "ai-1", {"box": [1, 2]})

        assert result.outcome == RegistryOutcome.VALIDATION_FAILURE
        assert result.state is self.state

    def test_update_with_null_box_rejected(self):
        result = self.registry.update(self.state, "ai-1", {"box": None})
        assert result.outcome == RegistryOutcome.VALIDATION_FAILURE


class TestAnomalyRegistryDelete:
    """Tests for AnomalyRegistry.delete()."""

    def setup_method(self):
        self.registry = AnomalyRegistry(
            recorder=AuditLogRecorder(clock=lambda: FIXED_NOW),
            id_factory=sequential_ids(),
        )
        state = self.registry.add(AnomalyState(), {
            "id": "ai-1",
            "box": [5, 5, 10, 10],
            "class": "hotspot",
            "confidence": 0.8,
            "madeBy": "AI",
        }).state
        self.state = self.registry.add(state, {"id": "user-1", "box": [1, 1, 2, 2]}).state

    def test_delete_removes_anomaly_and_logs_last_state(self):
        result = self.registry.delete(self.state, "ai-1")

        assert result.ok
        assert result.state.find("ai-1") is None
        assert len(result.state.anomalies) == 1

        entry = result.state.log[-1]
        assert entry.action == LogAction.DELETE
        assert entry.id == "ai-1"
        assert entry.box == [5.0, 5.0, 10.0, 10.0]
        assert entry.class_name == "hotspot"
        assert entry.confidence == 0.8
        assert entry.made_by == "AI"

    def test_delete_logs_original_provenance_after_attempted_change(self):
        """An edit that tries to flip madeBy does not affect the delete entry."""
        state = self.registry.update(self.state, "ai-1", {"madeBy": "User", "class": "edited"}).state
        result = self.registry.delete(state, "ai-1")

        assert result.entry.made_by == "AI"
        assert result.entry.class_name == "edited"

    def test_history_survives_in_log(self):
        result = self.registry.delete(self.state, "ai-1")

        actions = [(e.id, e.action) for e in result.state.log]
        assert actions == [
            ("ai-1", LogAction.ADD),
            ("user-1", LogAction.ADD),
            ("ai-1", LogAction.DELETE),
        ]

    def test_second_delete_is_not_found(self):
        state = self.registry.delete(self.state, "ai-1").state
        result = self.registry.delete(state, "ai-1")

        assert result.outcome == RegistryOutcome.NOT_FOUND
        assert result.state is state

    def test_update_after_delete_is_not_found(self):
        state = self.registry.delete(self.state, "user-1").state
        result = self.registry.update(state, "user-1", {"class": "x"})
        assert result.outcome == RegistryOutcome.NOT_FOUND


class TestAnomalyModel:
    """Wire format of stored anomalies."""

    def test_to_dict_uses_wire_keys(self):
        anomaly = Anomaly(id="a", box=[1, 2, 3, 4], class_name="wear", made_by=Provenance.USER)

        assert anomaly.to_dict() == {
            "id": "a",
            "box": [1.0, 2.0, 3.0, 4.0],
            "class": "wear",
            "confidence": None,
            "madeBy": "User",
        }

    def test_geometry_accessors(self):
        anomaly = Anomaly(id="a", box=[1, 2, 3, 4], made_by=Provenance.AI)
        assert (anomaly.center_x, anomaly.center_y, anomaly.width, anomaly.height) == (1, 2, 3, 4)

    def test_reads_lowercase_provenance(self):
        anomaly = Anomaly.model_validate({"id": "a", "box": [1, 1, 1, 1], "madeBy": "user"})
        assert anomaly.made_by == Provenance.USER

    def test_accepts_class_name_key(self):
        anomaly = Anomaly.model_validate({"id": "a", "box": [1, 1, 1, 1], "className": "rust", "madeBy": "AI"})
        assert anomaly.class_name == "rust"
