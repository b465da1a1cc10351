"""Retry policy with exponential backoff for the generation service."""

from typing import List

from pydantic import BaseModel, Field


class RetryPolicy(BaseModel):
    """
    Bounded exponential backoff.
    
    The wait before retry k (k = 1..max_retries) is
    ``base_delay_seconds * 2 ** (k - 1)``. No jitter and no cap beyond
    the retry ceiling.
    
    Example:
        >>> RetryPolicy().delays()
        [1.0, 2.0, 4.0]
    """
    max_retries: int = Field(default=3, ge=0)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    
    class Config:
        frozen = True
    
    @property
    def max_attempts(self) -> int:
        """Total attempts, the first call included."""
        return self.max_retries + 1
    
    def delay_for(self, retry_number: int) -> float:
        """
        Seconds to wait before the given retry.
        
        Args:
            retry_number: 1-based retry index
            
        Raises:
            ValueError: If retry_number is outside 1..max_retries
        """
        if not 1 <= retry_number <= self.max_retries:
            raise ValueError(
                f"retry_number must be in 1..{self.max_retries}, got {retry_number}"
            )
        return self.base_delay_seconds * self.backoff_factor ** (retry_number - 1)
    
    def delays(self) -> List[float]:
        return [self.delay_for(k) for k in range(1, self.max_retries + 1)]
    
    def should_retry(self, attempt: int) -> bool:
        """Whether a failed attempt (1-based) is followed by another one."""
        return attempt <= self.max_retries
