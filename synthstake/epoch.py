"""
Epoch clock.

The staking components read the current epoch but never set it. Whoever
owns the clock (a host runtime, a scenario runner, a test) advances it; the
counter never decreases.
"""

from __future__ import annotations

import threading
from typing import Optional

from synthstake.config import get_config
from synthstake.hardening import ArithmeticOverflow, InvariantChecker, ValidationError


class EpochClock:
    """Monotonically non-decreasing epoch counter."""

    def __init__(self, start: int = 0, max_epoch: Optional[int] = None):
        if max_epoch is None:
            max_epoch = get_config().staking.max_epoch.get()
        if isinstance(start, bool) or not isinstance(start, int) or start < 0:
            raise ValidationError("epoch", "Epoch must be a non-negative int", start)
        if start > max_epoch:
            raise ArithmeticOverflow(f"Epoch {start} exceeds {max_epoch}")
        self._epoch = start
        self._max_epoch = max_epoch
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        with self._lock:
            return self._epoch

    @property
    def max_epoch(self) -> int:
        return self._max_epoch

    def set(self, epoch: int) -> int:
        """Jump to ``epoch``; it may equal but never precede the current epoch."""
        if isinstance(epoch, bool) or not isinstance(epoch, int):
            raise ValidationError("epoch", f"Expected int, got {type(epoch).__name__}", epoch)
        with self._lock:
            InvariantChecker.check_monotonic_increase("epoch", self._epoch, epoch)
            if epoch > self._max_epoch:
                raise ArithmeticOverflow(f"Epoch {epoch} exceeds {self._max_epoch}")
            self._epoch = epoch
            return self._epoch

    def advance(self, epochs: int = 1) -> int:
        if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs < 0:
            raise ValidationError("epochs", "Must be a non-negative int", epochs)
        return self.set(self.current + epochs)

    def __repr__(self) -> str:
        return f"EpochClock(current={self.current})"
