"""
Business identifier generator.

Produces human-readable numbers such as I-004217: a prefix, a dash and six
zero-padded random digits (1,000,000 possible values per prefix).

Each candidate is checked against the store through an existence
predicate, one blocking round trip per attempt. After max_attempts
collisions the generator gives up with ExhaustedRetriesError. The bound
only guards against endless loops; by the birthday bound, collisions
become noticeable once a prefix holds a few thousand records, and the
namespace must be widened (or uniqueness enforced by the store alone)
well before it fills.

Do not run generators for the same prefix in parallel unless the store
enforces uniqueness: two generators can both see a candidate as free
between check and write.
"""

import logging
import random
from typing import Callable, Optional

from .errors import ExhaustedRetriesError

logger = logging.getLogger(__name__)

DEFAULT_DIGITS = 6
DEFAULT_MAX_ATTEMPTS = 10_000


class IdentifierGenerator:
    """Bounded-retry random identifier generator."""
    
    def __init__(
        self,
        prefix: str,
        exists: Callable[[str], bool],
        rng: Optional[random.Random] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        digits: int = DEFAULT_DIGITS,
    ):
        """
        Initialize generator.
        
        Args:
            prefix: Identifier prefix, e.g. "I" for inspections
            exists: Returns True if a candidate is already taken
            rng: Randomness source (defaults to a fresh random.Random)
            max_attempts: Candidates to try before giving up
            digits: Number of random digits
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        
        self.prefix = prefix
        self.exists = exists
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self.digits = digits
    
    @property
    def namespace_size(self) -> int:
        return 10 ** self.digits
    
    def candidate(self) -> str:
        """Draw one candidate without checking it."""
        number = self.rng.randrange(self.namespace_size)
        return f"{self.prefix}-{number:0{self.digits}d}"
    
    def generate(self) -> str:
        """
        Return an identifier the existence predicate reports as free.
        
        Raises:
            ExhaustedRetriesError: If every attempt collided
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.candidate()
            if not self.exists(candidate):
                if attempt > 1:
                    logger.info(f"Generated {candidate} after {attempt} attempts")
                return candidate
        
        logger.error(f"Identifier namespace {self.prefix}- exhausted after {self.max_attempts} attempts")
        raise ExhaustedRetriesError(self.prefix, self.max_attempts)
