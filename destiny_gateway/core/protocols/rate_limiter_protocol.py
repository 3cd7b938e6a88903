"""
Rate Limiter Protocol Definition

Protocol for admission controllers guarding outbound calls.
"""

from typing import Protocol, Dict, Any, Optional, runtime_checkable


@runtime_checkable
class RateLimiterProtocol(Protocol):
    """Protocol for admission control."""

    async def admit(self, timeout_ms: Optional[float] = None) -> None:
        """
        Suspend until one more call may proceed.

        Args:
            timeout_ms: Optional upper bound on the wait
        """
        ...

    def remaining_requests(self) -> int:
        """
        Admission slots left in the current window.

        Returns:
            Number of calls that would be admitted without waiting
        """
        ...

    def reset_time_ms(self) -> float:
        """
        Time until the next slot frees.

        Returns:
            Milliseconds, 0 if a slot is free
        """
        ...

    def get_status(self) -> Dict[str, Any]:
        """
        Snapshot of limiter state.

        Returns:
            Status dictionary
        """
        ...
