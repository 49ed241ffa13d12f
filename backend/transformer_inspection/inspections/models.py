"""
Inspection model.

Typed view of a stored inspection. Built once from the store's dict via
Inspection.from_record(); anomalies and log entries are validated there
and never re-checked on access.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..anomalies.models import Anomaly
from ..anomalies.registry import AnomalyState
from ..audit.models import LogEntry


class Inspection(BaseModel):
    """A single equipment inspection."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    iid: int
    inspection_number: str = Field(alias="inspectionNumber")
    transformer_number: str = Field(alias="transformerNumber")
    inspection_date: Optional[str] = Field(default=None, alias="inspectionDate")
    maintainance_date: Optional[str] = Field(default=None, alias="maintainanceDate")
    status: Optional[str] = None
    inspector: Optional[str] = None
    ref_image: str = Field(default="", alias="refImage")
    anomalies: List[Anomaly] = Field(default_factory=list)
    anomalies_log: List[LogEntry] = Field(default_factory=list, alias="anomaliesLog")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Inspection":
        return cls.model_validate(record)

    @property
    def anomaly_state(self) -> AnomalyState:
        return AnomalyState(anomalies=tuple(self.anomalies), log=tuple(self.anomalies_log))

    def to_dict(self) -> dict:
        """Serialize using wire keys."""
        return self.model_dump(mode="json", by_alias=True)


def state_to_records(state: AnomalyState):
    """Serialize an AnomalyState into the (anomalies, anomaliesLog) arrays the store expects."""
    return (
        [anomaly.to_dict() for anomaly in state.anomalies],
        [entry.to_dict() for entry in state.log],
    )
