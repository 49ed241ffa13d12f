"""
Anomaly registry.

The mutation surface for an inspection's anomalies. Every operation takes
the current AnomalyState (anomaly set + audit log) and returns a
RegistryResult holding the new state. Nothing is mutated in place; the
caller persists result.state as a unit.

Rules enforced here:
- One audit entry per successful add, update or delete
- Provenance (madeBy) never changes after creation
- Anomaly ids are unique within the set
- Failed operations leave both anomalies and log untouched
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..audit.models import LogAction, LogEntry
from ..audit.recorder import AuditLogRecorder
from .errors import AnomalyNotFoundError, AnomalyValidationError
from .models import Anomaly, AnomalyInput, AnomalyPatch, Provenance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnomalyState:
    """An inspection's current anomalies and their audit log."""

    anomalies: Tuple[Anomaly, ...] = ()
    log: Tuple[LogEntry, ...] = ()

    def find(self, anomaly_id: str) -> Optional[Anomaly]:
        for anomaly in self.anomalies:
            if anomaly.id == anomaly_id:
                return anomaly
        return None


class RegistryOutcome(str, Enum):
    """Outcome classification for registry operations."""

    OK = "ok"
    NOT_FOUND = "not_found"
    VALIDATION_FAILURE = "validation_failure"


@dataclass(frozen=True)
class RegistryResult:
    """
    Result of a registry operation.

    On failure, `state` is the unchanged input state and `message`
    describes the problem.
    """

    outcome: RegistryOutcome
    state: AnomalyState
    anomaly: Optional[Anomaly] = None
    entry: Optional[LogEntry] = None
    message: Optional[str] = None
    anomaly_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == RegistryOutcome.OK

    def unwrap(self) -> AnomalyState:
        """
        Return the new state, raising if the operation failed.

        Raises:
            AnomalyNotFoundError: outcome is NOT_FOUND
            AnomalyValidationError: outcome is VALIDATION_FAILURE
        """
        if self.outcome == RegistryOutcome.NOT_FOUND:
            raise AnomalyNotFoundError(self.anomaly_id or "")
        if self.outcome == RegistryOutcome.VALIDATION_FAILURE:
            raise AnomalyValidationError(self.message or "")
        return self.state


AnomalyPayload = Union[AnomalyInput, Mapping[str, Any]]
PatchPayload = Union[AnomalyPatch, Mapping[str, Any]]


def _new_anomaly_id() -> str:
    return str(uuid.uuid4())


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "record"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


class AnomalyRegistry:
    """
    Stateless add/update/delete over AnomalyState.

    Holds only collaborators (audit recorder and id factory), so one
    instance is shared by all inspections.
    """

    def __init__(
        self,
        recorder: Optional[AuditLogRecorder] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize registry.

        Args:
            recorder: Audit log recorder (defaults to a UTC-clock recorder)
            id_factory: Produces new anomaly ids (defaults to UUID4 strings)
        """
        self.recorder = recorder or AuditLogRecorder()
        self._id_factory = id_factory or _new_anomaly_id

    def get(self, state: AnomalyState) -> List[Anomaly]:
        """Current anomalies in display order. Empty list when none exist."""
        return list(state.anomalies)

    def add(self, state: AnomalyState, record: AnomalyPayload) -> RegistryResult:
        """
        Add an anomaly.

        A missing or empty id is generated. A missing madeBy defaults to
        User. Geometry is stored as given; callers supply canonical boxes.

        Args:
            state: Current anomalies and log
            record: AnomalyInput or raw mapping with wire keys

        Returns:
            RegistryResult with outcome OK or VALIDATION_FAILURE
        """
        try:
            payload = record if isinstance(record, AnomalyInput) else AnomalyInput.model_validate(record)
        except ValidationError as e:
            return self._failure(state, RegistryOutcome.VALIDATION_FAILURE, _describe(e))

        anomaly_id = (payload.id or "").strip()
        if anomaly_id and state.find(anomaly_id) is not None:
            return self._failure(
                state,
                RegistryOutcome.VALIDATION_FAILURE,
                f"Anomaly with ID '{anomaly_id}' already exists",
            )
        if not anomaly_id:
            anomaly_id = self._unused_id(state)

        anomaly = Anomaly(
            id=anomaly_id,
            box=payload.box,
            class_name=payload.class_name,
            confidence=payload.confidence,
            made_by=payload.made_by or Provenance.USER,
        )

        log, entry = self.recorder.record(state.log, LogAction.ADD, anomaly)
        new_state = AnomalyState(anomalies=state.anomalies + (anomaly,), log=log)

        logger.info(f"Anomaly added: {anomaly.id} (madeBy={anomaly.made_by.value})")
        return RegistryResult(RegistryOutcome.OK, new_state, anomaly=anomaly, entry=entry)

    def update(
        self,
        state: AnomalyState,
        anomaly_id: str,
        fields: PatchPayload,
    ) -> RegistryResult:
        """
        Edit an anomaly.

        Each supplied field (box, class, confidence) replaces the stored
        value as a whole; omitted fields keep their value. The id and
        madeBy always stay as originally stored, whatever the caller sends.

        Args:
            state: Current anomalies and log
            anomaly_id: Id of the anomaly to edit
            fields: AnomalyPatch or raw mapping with wire keys

        Returns:
            RegistryResult with outcome OK, NOT_FOUND or VALIDATION_FAILURE
        """
        original = state.find(anomaly_id)
        if original is None:
            return self._not_found(state, anomaly_id)

        try:
            patch = fields if isinstance(fields, AnomalyPatch) else AnomalyPatch.model_validate(fields)
        except ValidationError as e:
            return self._failure(state, RegistryOutcome.VALIDATION_FAILURE, _describe(e))

        if patch.made_by is not None and patch.made_by != original.made_by:
            logger.debug(
                f"Ignoring madeBy={patch.made_by.value} on edit of {anomaly_id}; "
                f"provenance stays {original.made_by.value}"
            )

        updated = original.model_copy(update=patch.changes())
        anomalies = tuple(updated if a.id == anomaly_id else a for a in state.anomalies)

        log, entry = self.recorder.record(state.log, LogAction.EDIT, updated)
        new_state = AnomalyState(anomalies=anomalies, log=log)

        logger.info(f"Anomaly edited: {anomaly_id}")
        return RegistryResult(RegistryOutcome.OK, new_state, anomaly=updated, entry=entry)

    def delete(self, state: AnomalyState, anomaly_id: str) -> RegistryResult:
        """
        Remove an anomaly.

        The delete entry captures the anomaly exactly as it was stored
        just before removal, including its original provenance.

        Returns:
            RegistryResult with outcome OK or NOT_FOUND
        """
        removed = state.find(anomaly_id)
        if removed is None:
            return self._not_found(state, anomaly_id)

        anomalies = tuple(a for a in state.anomalies if a.id != anomaly_id)
        log, entry = self.recorder.record(state.log, LogAction.DELETE, removed)
        new_state = AnomalyState(anomalies=anomalies, log=log)

        logger.info(f"Anomaly deleted: {anomaly_id}")
        return RegistryResult(RegistryOutcome.OK, new_state, anomaly=removed, entry=entry)

    def _unused_id(self, state: AnomalyState) -> str:
        candidate = self._id_factory()
        while state.find(candidate) is not None:
            candidate = self._id_factory()
        return candidate

    @staticmethod
    def _not_found(state: AnomalyState, anomaly_id: str) -> RegistryResult:
        message = f"Anomaly with ID {anomaly_id} not found"
        logger.info(f"Anomaly registry rejected operation (not_found): {message}")
        return RegistryResult(RegistryOutcome.NOT_FOUND, state, message=message, anomaly_id=anomaly_id)

    @staticmethod
    def _failure(state: AnomalyState, outcome: RegistryOutcome, message: str) -> RegistryResult:
        logger.info(f"Anomaly registry rejected operation ({outcome.value}): {message}")
        return RegistryResult(outcome, state, message=message)
