"""
InspectionService: inspection records and their anomaly lifecycle.

Every anomaly operation follows the same cycle:
1. Load the inspection from the store (typed once, at the boundary)
2. Run the registry operation on the in-memory AnomalyState
3. On success, write the complete anomalies + anomaliesLog arrays back

Step 3 is a whole-field replace with no version check. Two concurrent
mutations of one inspection can interleave and the later write wins; the
store is treated as a plain document store and this gap is accepted.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from ..anomalies.models import Anomaly
from ..anomalies.registry import AnomalyRegistry, AnomalyState, RegistryResult
from ..audit.models import LogEntry
from ..detection.pipeline import DetectionImportPipeline, ImportResult
from ..identifiers.generator import IdentifierGenerator
from ..persistence.store import InspectionStore
from .errors import InspectionNotFoundError, InvalidInspectionRecordError
from .models import Inspection, state_to_records

logger = logging.getLogger(__name__)


class InspectionService:
    """
    Composition of store, anomaly registry, detection pipeline and
    inspection number generator.
    """

    def __init__(
        self,
        store: InspectionStore,
        registry: AnomalyRegistry,
        pipeline: Optional[DetectionImportPipeline] = None,
        number_generator: Optional[IdentifierGenerator] = None,
    ):
        """
        Initialize service.

        Args:
            store: Inspection store
            registry: Anomaly registry
            pipeline: Detection import pipeline; without one, uploaded
                images are stored but never analyzed
            number_generator: Inspection number generator (defaults to
                I-NNNNNN checked against the store)
        """
        self.store = store
        self.registry = registry
        self.pipeline = pipeline
        self.number_generator = number_generator or IdentifierGenerator(
            prefix="I",
            exists=store.inspection_number_exists,
        )

    # Inspections

    def create_inspection(
        self,
        transformer_number: str,
        inspection_number: Optional[str] = None,
        inspection_date: Optional[str] = None,
        maintainance_date: Optional[str] = None,
        status: Optional[str] = None,
        inspector: Optional[str] = None,
        image: Optional[bytes] = None,
        image_url: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> Inspection:
        """
        Create an inspection, analyzing its image if one is supplied.

        A blank inspection number is generated. Detector failures do not
        fail creation; the inspection is stored without AI anomalies.

        Raises:
            ValueError: If transformer_number is empty
            ExhaustedRetriesError: If no free inspection number was found
        """
        if not transformer_number or not transformer_number.strip():
            raise ValueError("transformer_number cannot be empty.")

        if not inspection_number or not inspection_number.strip():
            inspection_number = self.number_generator.generate()

        state = AnomalyState()
        ref_image = image_url or ""

        if image:
            result = self._analyze(state, image, threshold)
            if result is not None:
                state = result.state
                ref_image = result.image_url or ref_image

        anomalies, anomalies_log = state_to_records(state)
        iid = self.store.create_inspection({
            "inspectionNumber": inspection_number.strip(),
            "transformerNumber": transformer_number.strip(),
            "inspectionDate": inspection_date,
            "maintainanceDate": maintainance_date,
            "status": status,
            "inspector": inspector,
            "refImage": ref_image,
            "anomalies": anomalies,
            "anomaliesLog": anomalies_log,
        })

        logger.info(
            f"Inspection created: iid={iid} number={inspection_number} "
            f"anomalies={len(anomalies)}"
        )
        return self.get_inspection(iid)

    def get_inspection(self, iid: int) -> Inspection:
        """
        Load an inspection.

        Raises:
            InspectionNotFoundError: If it does not exist
            InvalidInspectionRecordError: If stored data fails validation
        """
        record = self.store.load_inspection(iid)
        if record is None:
            raise InspectionNotFoundError(iid)
        return self._validate(iid, record)

    def list_inspections(self) -> List[Inspection]:
        """All inspections, newest first."""
        return [
            self._validate(record["iid"], record)
            for record in self.store.load_all_inspections()
        ]

    def delete_inspection(self, iid: int) -> None:
        """
        Delete an inspection and its anomaly history.

        Raises:
            InspectionNotFoundError: If it does not exist
        """
        if not self.store.delete_inspection(iid):
            raise InspectionNotFoundError(iid)
        logger.info(f"Inspection deleted: iid={iid}")

    def replace_image(
        self,
        iid: int,
        image: bytes,
        threshold: Optional[float] = None,
        image_url: Optional[str] = None,
    ) -> Tuple[Inspection, Optional[ImportResult]]:
        """
        Attach a new image and merge its detections into the inspection.

        New AI anomalies are appended to the existing set and their "add"
        entries to the existing log. Nothing already in the log is touched.

        Returns:
            (updated inspection, pipeline result or None if no pipeline ran)

        Raises:
            InspectionNotFoundError: If the inspection does not exist
        """
        inspection = self.get_inspection(iid)
        ref_image = image_url or ""

        result = self._analyze(inspection.anomaly_state, image, threshold) if image else None
        if result is not None:
            ref_image = result.image_url or ref_image
            if result.new_entries:
                self._save(iid, result.state)

        if not self.store.save_ref_image(iid, ref_image):
            raise InspectionNotFoundError(iid)

        return self.get_inspection(iid), result

    # Anomalies

    def get_anomalies(self, iid: int) -> List[Anomaly]:
        """Current anomalies, empty list when there are none."""
        return self.registry.get(self.get_inspection(iid).anomaly_state)

    def get_anomaly_log(self, iid: int) -> List[LogEntry]:
        """Full audit log in append order."""
        return list(self.get_inspection(iid).anomalies_log)

    def add_anomaly(self, iid: int, payload) -> RegistryResult:
        """Add a reviewer anomaly. Persisted only if the registry accepts it."""
        state = self.get_inspection(iid).anomaly_state
        return self._commit(iid, self.registry.add(state, payload))

    def update_anomaly(self, iid: int, anomaly_id: str, payload) -> RegistryResult:
        """Edit an anomaly. Persisted only if the registry accepts it."""
        state = self.get_inspection(iid).anomaly_state
        return self._commit(iid, self.registry.update(state, anomaly_id, payload))

    def delete_anomaly(self, iid: int, anomaly_id: str) -> RegistryResult:
        """Delete an anomaly. Persisted only if the registry accepts it."""
        state = self.get_inspection(iid).anomaly_state
        return self._commit(iid, self.registry.delete(state, anomaly_id))

    # Internals

    def _analyze(self, state: AnomalyState, image: bytes, threshold: Optional[float]) -> Optional[ImportResult]:
        if self.pipeline is None:
            logger.info("No detection pipeline configured; image stored without analysis")
            return None
        return self.pipeline.run(state, image, threshold=threshold)

    def _commit(self, iid: int, result: RegistryResult) -> RegistryResult:
        if result.ok:
            self._save(iid, result.state)
        return result

    def _save(self, iid: int, state: AnomalyState) -> None:
        anomalies, anomalies_log = state_to_records(state)
        if not self.store.save_anomalies(iid, anomalies, anomalies_log):
            raise InspectionNotFoundError(iid)

    @staticmethod
    def _validate(iid: int, record: dict) -> Inspection:
        try:
            return Inspection.from_record(record)
        except ValidationError as e:
            raise InvalidInspectionRecordError(iid, str(e)) from e
