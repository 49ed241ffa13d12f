"""
Anomaly audit log.

Append-only history of anomaly mutations, one entry per add, edit or
delete. Entries are never rewritten.
"""

from .errors import AuditLogError, InvalidSnapshotError
from .models import LogAction, LogEntry, format_timestamp
from .recorder import AuditLogRecorder

__all__ = [
    "AuditLogError",
    "InvalidSnapshotError",
    "LogAction",
    "LogEntry",
    "format_timestamp",
    "AuditLogRecorder",
]
