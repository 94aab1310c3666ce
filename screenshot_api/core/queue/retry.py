"""
Retry Policy
============

Delay schedule for re-running failed job attempts.
"""

from typing import Callable, Optional, Sequence


RetryDelayFn = Callable[[int], float]


def exponential_backoff(attempts: int, base: float = 2.0) -> float:
    """
    Delay in seconds before the retry that follows ``attempts`` attempts.

    With the default base this yields 2s, 4s, 8s for attempts 1, 2, 3.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    return float(base**attempts)


class RetryPolicy:
    """Callable mapping an attempt count to a retry delay in seconds."""

    def __init__(self, base: float = 2.0, delays: Optional[Sequence[float]] = None):
        if delays is not None and not delays:
            raise ValueError("delays must not be empty")
        self.base = base
        self.delays = list(delays) if delays is not None else None

    def __call__(self, attempts: int) -> float:
        if self.delays is None:
            return exponential_backoff(attempts, self.base)
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        # Past the end of the schedule the last delay repeats
        return float(self.delays[min(attempts, len(self.delays)) - 1])

    def __repr__(self) -> str:
        if self.delays is None:
            return f"RetryPolicy(base={self.base})"
        return f"RetryPolicy(delays={self.delays})"
