"""
Identifier generation errors.
"""


class IdentifierError(Exception):
    """Base exception for identifier generation."""
    
    pass


class ExhaustedRetriesError(IdentifierError):
    """
    Raised when no free identifier was found within the attempt bound.
    
    Indicates namespace exhaustion or an unavailable store. Fatal.
    """
    
    def __init__(self, prefix: str, attempts: int):
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"Unable to generate a unique {prefix}- identifier after {attempts} attempts"
        )
