"""
Persistence layer for inspections.

SQLite-backed storage with whole-field replacement of the anomaly arrays.
"""

from .store import InspectionStore, decode_array
from .errors import PersistenceError, SchemaError, LoadError, SaveError

__all__ = [
    "InspectionStore",
    "decode_array",
    "PersistenceError",
    "SchemaError",
    "LoadError",
    "SaveError",
]
