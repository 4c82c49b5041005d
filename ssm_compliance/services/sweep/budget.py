"""Cooperative execution budget for one organization sweep."""

from __future__ import annotations

import time
from collections.abc import Callable

from ssm_compliance.errors import SweepTimeoutError


class SweepBudget:
    """Checked between entities and between deliveries. seconds <= 0 disables the limit."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = seconds
        self._clock = clock
        self._started = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    @property
    def exceeded(self) -> bool:
        return self.seconds > 0 and self.elapsed > self.seconds

    def check(self, stage: str) -> None:
        if self.exceeded:
            raise SweepTimeoutError(stage, self.elapsed, self.seconds)
