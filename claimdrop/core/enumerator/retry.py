"""
Bounded exponential-backoff retry for idempotent reads.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from claimdrop.core.errors import EnumerationError, ItemNotFoundError
from claimdrop.utils.logger import get_logger

logger = get_logger("enumerator.retry")

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Retry configuration.
    
    Attempt n (0-based) that fails waits base_delay * 2**n before the next
    attempt; the last failure is raised as EnumerationError.
    """
    attempts: int = 3
    base_delay: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def get_delay(self, attempt: int) -> float:
        """Delay after a failed attempt (0-based)."""
        return self.base_delay * (2 ** attempt)

    async def run(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """
        Run operation, retrying on failure.
        
        ItemNotFoundError is an answer, not a fault, and is never retried.
        
        Raises:
            EnumerationError: After the final attempt fails
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.attempts):
            try:
                return await operation()
            except ItemNotFoundError:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning(f"{label}: attempt {attempt + 1}/{self.attempts} failed: {exc}")
                if attempt < self.attempts - 1:
                    await self.sleep(self.get_delay(attempt))

        logger.error(f"{label}: giving up after {self.attempts} attempts")
        raise EnumerationError(f"{label} failed after {self.attempts} attempts: {last_error}") from last_error
