"""
Append-only audit log recorder.

The recorder never edits or drops entries. Each call returns a new log
with exactly one entry appended. There is no rotation or compaction:
a long-lived inspection's log grows without bound, so the recorder warns
each time a log crosses a multiple of the configured size.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Tuple

from .errors import InvalidSnapshotError
from .models import LogAction, LogEntry, format_timestamp

if TYPE_CHECKING:
    from ..anomalies.models import Anomaly

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogRecorder:
    """
    Builds and appends audit log entries.
    
    Timestamps come from an injectable clock. If the clock reads earlier
    than the newest entry already in the log, the newest timestamp is
    reused so the log stays non-decreasing.
    """
    
    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        warn_size: int = 1000,
    ):
        """
        Initialize recorder.
        
        Args:
            clock: Returns the current time (defaults to UTC now)
            warn_size: Log length at which (and at every multiple of which)
                a growth warning is emitted. 0 disables the warning.
        """
        self._clock = clock or _utc_now
        self.warn_size = warn_size
    
    def build_entry(
        self,
        action: LogAction,
        snapshot: "Anomaly",
        previous: Sequence[LogEntry] = (),
    ) -> LogEntry:
        """
        Build an entry for an anomaly snapshot without appending it.
        
        Args:
            action: add, edit or delete
            snapshot: Anomaly state to capture
            previous: Existing log, used to keep timestamps non-decreasing
            
        Returns:
            The new LogEntry
        """
        if snapshot is None:
            raise InvalidSnapshotError("snapshot is required")
        
        moment = self._clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(timezone.utc).replace(
            microsecond=moment.microsecond // 1000 * 1000
        )
        timestamp = format_timestamp(moment)

        if previous:
            last = previous[-1]
            last_at = last.captured_at
            if last_at is not None:
                if last_at.tzinfo is None:
                    last_at = last_at.replace(tzinfo=timezone.utc)
                if last_at > moment:
                    # Older entries may carry nanoseconds or no fraction at all
                    timestamp = format_timestamp(last_at.astimezone(timezone.utc))
        
        return LogEntry(
            id=snapshot.id,
            box=list(snapshot.box),
            confidence=snapshot.confidence if snapshot.confidence is not None else 0.0,
            class_name=snapshot.class_name or "",
            timestamp=timestamp,
            made_by=snapshot.made_by.value,
            action=LogAction(action),
        )
    
    def record(
        self,
        log: Sequence[LogEntry],
        action: LogAction,
        snapshot: "Anomaly",
    ) -> Tuple[Tuple[LogEntry, ...], LogEntry]:
        """
        Append one entry for `snapshot` to `log`.
        
        The input sequence is not modified.
        
        Returns:
            (new log, appended entry)
        """
        entry = self.build_entry(action, snapshot, log)
        new_log = tuple(log) + (entry,)
        
        if self.warn_size and len(new_log) % self.warn_size == 0:
            logger.warning(
                f"Anomaly audit log reached {len(new_log)} entries; "
                f"the log is never compacted"
            )
        
        return new_log, entry
