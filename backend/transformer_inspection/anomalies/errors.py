"""
Anomaly-specific error types.

All errors inherit from AnomalyError for easy catching.
Registry operations report failures through RegistryResult; these
exceptions are raised by RegistryResult.unwrap() for callers that
prefer exceptions.
"""


class AnomalyError(Exception):
    """Base exception for all anomaly-related failures."""
    pass


class AnomalyNotFoundError(AnomalyError):
    """Raised when an anomaly id is not in the inspection's anomaly set."""
    
    def __init__(self, anomaly_id: str):
        self.anomaly_id = anomaly_id
        super().__init__(f"Anomaly not found: {anomaly_id}")


class AnomalyValidationError(AnomalyError):
    """Raised when an anomaly payload is malformed."""
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid anomaly: {reason}")
