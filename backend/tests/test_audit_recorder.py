"""
Tests for the append-only audit log recorder.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from transformer_inspection.anomalies.models import Anomaly, Provenance
from transformer_inspection.audit import AuditLogRecorder, LogAction, LogEntry, format_timestamp
from transformer_inspection.audit.errors import InvalidSnapshotError


class SteppingClock:
    """Returns the given datetimes in order, repeating the last one."""
    
    def __init__(self, *moments):
        self.moments = list(moments)
    
    def __call__(self):
        if len(self.moments) > 1:
            return self.moments.pop(0)
        return self.moments[0]


T0 = datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)


def make_anomaly(**overrides):
    data = {
        "id": "a-1",
        "box": [5.0, 5.0, 10.0, 10.0],
        "class_name": "hotspot",
        "confidence": 0.9,
        "made_by": Provenance.AI,
    }
    data.update(overrides)
    return Anomaly(**data)


class TestFormatTimestamp:
    
    def test_millisecond_precision_with_z_suffix(self):
        assert format_timestamp(T0) == "2024-05-01T10:00:00.123Z"
    
    def test_zero_millis_padded(self):
        moment = datetime(2024, 1, 2, 3, 4, 5, 7000, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2024-01-02T03:04:05.007Z"


class TestAuditLogRecorder:
    
    def setup_method(self):
        self.recorder = AuditLogRecorder(clock=SteppingClock(T0))
    
    def test_record_appends_exactly_one_entry(self):
        log, entry = self.recorder.record((), LogAction.ADD, make_anomaly())
        
        assert len(log) == 1
        assert log[-1] is entry
        assert entry.action == LogAction.ADD
        assert entry.id == "a-1"
        assert entry.box == [5.0, 5.0, 10.0, 10.0]
        assert entry.class_name == "hotspot"
        assert entry.confidence == 0.9
        assert entry.made_by == "AI"
        assert entry.timestamp == "2024-05-01T10:00:00.123Z"
    
    def test_record_does_not_modify_input_log(self):
        first_log, _ = self.recorder.record((), LogAction.ADD, make_anomaly())
        second_log, _ = self.recorder.record(first_log, LogAction.EDIT, make_anomaly())
        
        assert len(first_log) == 1
        assert len(second_log) == 2
        assert second_log[0] == first_log[0]
    
    def test_missing_confidence_defaults_to_zero(self):
        _, entry = self.recorder.record((), LogAction.ADD, make_anomaly(confidence=None))
        assert entry.confidence == 0.0
    
    def test_missing_class_defaults_to_empty(self):
        _, entry = self.recorder.record((), LogAction.ADD, make_anomaly(class_name=""))
        assert entry.class_name == ""
    
    def test_none_snapshot_rejected(self):
        with pytest.raises(InvalidSnapshotError):
            self.recorder.record((), LogAction.ADD, None)
    
    def test_timestamps_never_go_backwards(self):
        """A clock that steps back reuses the newest timestamp already logged."""
        recorder = AuditLogRecorder(clock=SteppingClock(T0, T0 - timedelta(seconds=5)))
        
        log, first = recorder.record((), LogAction.ADD, make_anomaly())
        log, second = recorder.record(log, LogAction.EDIT, make_anomaly())
        
        assert second.timestamp == first.timestamp
    
    def test_timestamps_advance_with_clock(self):
        recorder = AuditLogRecorder(clock=SteppingClock(T0, T0 + timedelta(seconds=1)))
        
        log, first = recorder.record((), LogAction.ADD, make_anomaly())
        log, second = recorder.record(log, LogAction.DELETE, make_anomaly())
        
        assert second.captured_at > first.captured_at
        assert second.timestamp == "2024-05-01T10:00:01.123Z"
    
    def test_naive_clock_treated_as_utc(self):
        recorder = AuditLogRecorder(clock=lambda: datetime(2024, 5, 1, 10, 0, 0))
        _, entry = recorder.record((), LogAction.ADD, make_anomaly())
        assert entry.timestamp == "2024-05-01T10:00:00.000Z"
    
    def test_growth_warning_at_configured_size(self, caplog):
        recorder = AuditLogRecorder(clock=SteppingClock(T0), warn_size=2)
        
        with caplog.at_level(logging.WARNING, logger="transformer_inspection.audit.recorder"):
            log, _ = recorder.record((), LogAction.ADD, make_anomaly())
            assert not caplog.records
            log, _ = recorder.record(log, LogAction.EDIT, make_anomaly())
        
        assert len(caplog.records) == 1
        assert "2 entries" in caplog.records[0].getMessage()


class TestLogEntryWireFormat:
    
    def test_to_dict_uses_wire_keys(self):
        entry = LogEntry(
            id="a-1",
            box=[1.0, 2.0, 3.0, 4.0],
            confidence=0.5,
            class_name="crack",
            timestamp="2024-05-01T10:00:00.000Z",
            made_by="User",
            action=LogAction.DELETE,
        )
        
        assert entry.to_dict() == {
            "id": "a-1",
            "box": [1.0, 2.0, 3.0, 4.0],
            "confidence": 0.5,
            "class": "crack",
            "timestamp": "2024-05-01T10:00:00.000Z",
            "madeBy": "User",
            "action": "delete",
        }
    
    def test_reads_stored_entry(self):
        entry = LogEntry.model_validate({
            "id": "a-1",
            "box": [1, 2, 3, 4],
            "class": "wear",
            "timestamp": "2024-05-01T10:00:00.000Z",
            "madeBy": "AI",
            "action": "add",
        })
        
        assert entry.class_name == "wear"
        assert entry.confidence == 0.0
        assert entry.action == LogAction.ADD
    
    def test_reads_entry_without_tracked_action(self):
        entry = LogEntry.model_validate({
            "id": "a-1",
            "box": [1, 2, 3, 4],
            "class": None,
            "confidence": None,
            "timestamp": "2024-05-01T10:00:00.000Z",
            "madeBy": None,
            "action": "",
        })
        
        assert entry.action is None
        assert entry.class_name == ""
        assert entry.made_by == ""
        assert entry.confidence == 0.0
        assert entry.to_dict()["action"] == ""
    
    @pytest.mark.parametrize("timestamp,expected", [
        ("2024-05-01T10:00:05Z", datetime(2024, 5, 1, 10, 0, 5, tzinfo=timezone.utc)),
        ("2024-05-01T10:00:05.123456789Z", datetime(2024, 5, 1, 10, 0, 5, 123456, tzinfo=timezone.utc)),
    ])
    def test_captured_at_reads_other_precisions(self, timestamp, expected):
        entry = LogEntry(timestamp=timestamp, action=LogAction.ADD)
        assert entry.captured_at == expected


class TestClampedTimestampFormat:
    """A clamped timestamp is re-rendered, never copied verbatim."""
    
    @pytest.mark.parametrize("stored,expected", [
        ("2024-05-01T10:00:05Z", "2024-05-01T10:00:05.000Z"),
        ("2024-05-01T10:00:05.123456789Z", "2024-05-01T10:00:05.123Z"),
    ])
    def test_clamped_timestamp_uses_fixed_format(self, stored, expected):
        previous = (LogEntry(id="a-1", timestamp=stored, made_by="AI", action=LogAction.ADD),)
        recorder = AuditLogRecorder(clock=SteppingClock(T0))
        
        log, entry = recorder.record(previous, LogAction.EDIT, make_anomaly())
        
        assert entry.timestamp == expected
        assert len(log) == 2
