"""
Detection import pipeline.

Runs an inspection image through the external detector and merges the
results into the inspection's anomalies:

1. Resolve thresholds (out-of-range values fall back to defaults)
2. Call the detector
3. Convert each corner-pair box to center/size geometry
4. Add each detection through the anomaly registry as madeBy=AI,
   producing one "add" audit entry per detection

The pipeline fails open: if the detector cannot be reached or its output
cannot be used, the run returns the input state unchanged with no new
anomalies and no new log entries, so the enclosing image upload still
succeeds.

Concurrent runs against the same inspection are not serialized here; the
caller's read-modify-write against the store decides the final state.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..anomalies.geometry import corners_to_center
from ..anomalies.models import Anomaly, Provenance
from ..anomalies.registry import AnomalyRegistry, AnomalyState
from ..audit.models import LogEntry
from .client import DetectorClient
from .errors import DetectorGatewayError

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of one pipeline run."""

    state: AnomalyState
    threshold: float
    iou_threshold: float
    detections: List[Anomaly] = field(default_factory=list)
    new_entries: List[LogEntry] = field(default_factory=list)
    image_url: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def detector_failed(self) -> bool:
        return self.failure_reason is not None


def resolve_threshold(value: Optional[float], default: float, name: str = "threshold") -> float:
    """
    Return `value` if it lies in [0, 1], otherwise `default`.

    Out-of-range values are not rejected; they are logged and replaced.
    """
    if value is None:
        return default
    if 0.0 <= value <= 1.0:
        return float(value)
    logger.warning(f"Detector {name} {value} is outside [0, 1]; using default {default}")
    return default


class DetectionImportPipeline:
    """Detector call + normalization + registry merge, in one pass."""

    def __init__(
        self,
        detector: DetectorClient,
        registry: AnomalyRegistry,
        default_threshold: float = 0.1,
        default_iou_threshold: float = 0.2,
    ):
        """
        Initialize pipeline.

        Args:
            detector: External detector client
            registry: Registry used to add each detection
            default_threshold: Confidence threshold used when the caller's
                value is missing or out of range
            default_iou_threshold: Overlap threshold used likewise
        """
        self.detector = detector
        self.registry = registry
        self.default_threshold = default_threshold
        self.default_iou_threshold = default_iou_threshold

    def run(
        self,
        state: AnomalyState,
        image: bytes,
        threshold: Optional[float] = None,
        iou_threshold: Optional[float] = None,
    ) -> ImportResult:
        """
        Detect anomalies on `image` and merge them into `state`.

        Args:
            state: Current anomalies and log for the inspection
            image: Raw image bytes
            threshold: Caller-requested confidence threshold
            iou_threshold: Caller-requested overlap threshold

        Returns:
            ImportResult; on detector failure `state` is the input state
            and `failure_reason` is set
        """
        used_threshold = resolve_threshold(threshold, self.default_threshold)
        used_iou = resolve_threshold(iou_threshold, self.default_iou_threshold, "iou_threshold")

        result = ImportResult(state=state, threshold=used_threshold, iou_threshold=used_iou)

        if not image:
            logger.info("No image supplied; skipping detection")
            return result

        try:
            response = self.detector.detect(image, used_threshold, used_iou)
        except DetectorGatewayError as e:
            return self._fail_open(result, e.reason)

        merged = state
        detections: List[Anomaly] = []
        entries: List[LogEntry] = []

        for index, raw in enumerate(response.detections):
            added = self.registry.add(merged, {
                "box": corners_to_center(raw.box),
                "class": raw.class_name,
                "confidence": raw.confidence,
                "madeBy": Provenance.AI.value,
            })
            if not added.ok:
                return self._fail_open(result, f"detection {index} rejected: {added.message}")

            merged = added.state
            detections.append(added.anomaly)
            entries.append(added.entry)
            logger.debug(f"Imported detection {added.anomaly.id} ({raw.class_name}, {raw.confidence:.3f})")

        result.state = merged
        result.detections = detections
        result.new_entries = entries
        result.image_url = response.image_url

        logger.info(
            f"Detection import added {len(detections)} anomaly(ies) "
            f"(threshold={used_threshold}, iou_threshold={used_iou})"
        )
        return result

    @staticmethod
    def _fail_open(result: ImportResult, reason: str) -> ImportResult:
        logger.warning(f"Detection import skipped, continuing without detections: {reason}")
        result.failure_reason = reason
        return result
