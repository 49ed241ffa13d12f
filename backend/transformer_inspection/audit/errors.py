"""
Audit log errors.
"""


class AuditLogError(Exception):
    """Base exception for audit log failures."""
    
    pass


class InvalidSnapshotError(AuditLogError):
    """Raised when an entry cannot be built from the given snapshot."""
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot record audit entry: {reason}")
