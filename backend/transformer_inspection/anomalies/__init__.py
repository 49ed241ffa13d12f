"""
Anomaly lifecycle: records, geometry and the mutation registry.

Anomalies are created by detector import (madeBy=AI) or by a reviewer
(madeBy=User), edited only through the registry, and removed by delete.
Every mutation appends one audit log entry.
"""

from .errors import (
    AnomalyError,
    AnomalyNotFoundError,
    AnomalyValidationError,
)
from .geometry import corners_to_center
from .models import (
    Provenance,
    Anomaly,
    AnomalyInput,
    AnomalyPatch,
    validate_box,
)
from .registry import (
    AnomalyState,
    AnomalyRegistry,
    RegistryOutcome,
    RegistryResult,
)

__all__ = [
    # Errors
    "AnomalyError",
    "AnomalyNotFoundError",
    "AnomalyValidationError",
    # Geometry
    "corners_to_center",
    # Models
    "Provenance",
    "Anomaly",
    "AnomalyInput",
    "AnomalyPatch",
    "validate_box",
    # Registry
    "AnomalyState",
    "AnomalyRegistry",
    "RegistryOutcome",
    "RegistryResult",
]
