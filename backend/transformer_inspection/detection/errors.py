"""
Detector gateway errors.
"""


class DetectionError(Exception):
    """Base exception for detector integration failures."""
    
    pass


class DetectorGatewayError(DetectionError):
    """
    Raised when the external detector is unreachable, times out, answers
    with a non-2xx status, or returns output that cannot be parsed.
    
    The import pipeline absorbs this error (fail-open).
    """
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Detector gateway failure: {reason}")
