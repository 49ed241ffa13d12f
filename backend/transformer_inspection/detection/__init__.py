"""
External detector integration.

The detector is an opaque service that takes an image and returns
candidate boxes. This package wraps the HTTP call and imports the
results as AI-made anomalies.
"""

from .errors import DetectionError, DetectorGatewayError
from .client import DetectorClient, DetectorResponse, RawDetection
from .pipeline import DetectionImportPipeline, ImportResult, resolve_threshold

__all__ = [
    "DetectionError",
    "DetectorGatewayError",
    "DetectorClient",
    "DetectorResponse",
    "RawDetection",
    "DetectionImportPipeline",
    "ImportResult",
    "resolve_threshold",
]
