"""
Inspection records and the service that ties the anomaly lifecycle to
the store.
"""

from .errors import (
    InspectionError,
    InspectionNotFoundError,
    InvalidInspectionRecordError,
)
from .models import Inspection, state_to_records
from .service import InspectionService

__all__ = [
    # Errors
    "InspectionError",
    "InspectionNotFoundError",
    "InvalidInspectionRecordError",
    # Models
    "Inspection",
    "state_to_records",
    # Service
    "InspectionService",
]
