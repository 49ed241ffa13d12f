"""
Audit log entry model.

One entry per anomaly mutation. Entries are snapshots: they hold the
anomaly's geometry, class, confidence and provenance as they were at the
time of the action, so a deleted anomaly's last state lives on here.
"""

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.{millis:03d}Z"

# Externally written timestamps can carry nanoseconds; datetime keeps microseconds
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


class LogAction(str, Enum):
    """Kind of mutation an entry records."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class LogEntry(BaseModel):
    """A single immutable audit log entry."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = ""
    box: List[float] = Field(default_factory=list)
    confidence: float = 0.0
    class_name: str = Field(
        default="",
        validation_alias=AliasChoices("class", "className", "class_name"),
        serialization_alias="class",
    )
    timestamp: str
    made_by: str = Field(default="", alias="madeBy")
    action: Optional[LogAction] = None

    @field_validator("made_by", "class_name", mode="before")
    @classmethod
    def _null_text_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _null_confidence_is_zero(cls, value):
        return 0.0 if value is None else value

    @field_validator("action", mode="before")
    @classmethod
    def _blank_action_is_unknown(cls, value):
        # Older rows store "" when the action was not tracked
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    @field_serializer("action")
    def _serialize_action(self, value: Optional[LogAction]) -> str:
        return value.value if value is not None else ""

    @property
    def captured_at(self) -> Optional[datetime]:
        """Parsed timestamp, or None if the stored text is not ISO-8601."""
        try:
            text = _EXCESS_FRACTION.sub(r"\1", self.timestamp.replace("Z", "+00:00"))
            return datetime.fromisoformat(text)
        except ValueError:
            return None

    def to_dict(self) -> dict:
        """Serialize using wire keys."""
        return self.model_dump(mode="json", by_alias=True)


def format_timestamp(moment: datetime) -> str:
    """Render a UTC datetime in the fixed log format, e.g. 2024-05-01T10:00:00.123Z."""
    return moment.strftime(TIMESTAMP_FORMAT).format(millis=moment.microsecond // 1000)
