"""
Human-readable business identifiers (I-000123 and similar).
"""

from .errors import IdentifierError, ExhaustedRetriesError
from .generator import IdentifierGenerator

__all__ = ["IdentifierError", "ExhaustedRetriesError", "IdentifierGenerator"]
