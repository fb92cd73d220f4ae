"""
Exponential backoff for reconnection attempts.
"""


class ExponentialBackoff:
    """
    Progressively increasing wait times for retry attempts, capped at
    ``max_wait``.
    """

    def __init__(self, base: float = 1.0, max_wait: float = 60.0, factor: float = 2.0):
        """
        Initialize exponential backoff.

        Args:
            base: Initial backoff time in seconds
            max_wait: Maximum backoff time in seconds
            factor: Multiplication factor for each retry
        """
        self.base = base
        self.max_wait = max_wait
        self.factor = factor
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    def reset(self) -> None:
        """Reset attempt counter."""
        self._attempts = 0

    def next(self) -> float:
        """
        Get next backoff time.

        Returns:
            Backoff time in seconds (capped at max_wait)
        """
        backoff = min(self.base * (self.factor**self._attempts), self.max_wait)
        self._attempts += 1
        return backoff
