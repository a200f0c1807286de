"""Cooperative wall-clock budget for optimization requests."""

from __future__ import annotations

import time
from typing import Callable

from plansearch.core.exceptions import BudgetExceededError, ConfigurationError


class Deadline:
    """Wall-clock budget checked between units of work.

    The generator checks it between candidates and the amplifier between
    rounds, so an expired budget stops a request at the next boundary.

    Example:
        >>> deadline = Deadline(0.5)
        >>> deadline.check("generation")  # raises BudgetExceededError once expired
    """

    def __init__(
        self,
        budget_seconds: float | None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if budget_seconds is not None and budget_seconds < 0:
            raise ConfigurationError(
                f"time budget must be >= 0, got {budget_seconds}",
                details={"budget_seconds": budget_seconds},
            )
        self._budget = budget_seconds
        self._clock = clock
        self._started_at = clock()

    @property
    def budget_seconds(self) -> float | None:
        return self._budget

    def elapsed(self) -> float:
        return self._clock() - self._started_at

    def remaining(self) -> float | None:
        if self._budget is None:
            return None
        return max(self._budget - self.elapsed(), 0.0)

    def expired(self) -> bool:
        if self._budget is None:
            return False
        return self.elapsed() >= self._budget

    def check(self, stage: str = "") -> None:
        """Raise BudgetExceededError if the budget has run out."""
        if self.expired():
            raise BudgetExceededError(self._budget, self.elapsed(), stage)

    @classmethod
    def unlimited(cls) -> Deadline:
        return cls(None)
