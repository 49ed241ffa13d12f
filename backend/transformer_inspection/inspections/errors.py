"""
Inspection-level error types.
"""


class InspectionError(Exception):
    """Base exception for inspection service failures."""
    pass


class InspectionNotFoundError(InspectionError):
    """Raised when an inspection id does not exist in the store."""
    
    def __init__(self, iid: int):
        self.iid = iid
        super().__init__(f"Inspection with IID {iid} not found")


class InvalidInspectionRecordError(InspectionError):
    """Raised when a stored inspection fails validation on read."""
    
    def __init__(self, iid: int, reason: str):
        self.iid = iid
        self.reason = reason
        super().__init__(f"Inspection {iid} has invalid stored data: {reason}")
