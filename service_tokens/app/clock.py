"""
Time source for claim computation and validation.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional


def current_timestamp() -> int:
    """Current time in whole seconds since the epoch."""
    return int(time.time())


@dataclass(frozen=True)
class Clock:
    """Point of view used when comparing time claims.

    ``timestamp`` pins "now" (the ``clock_timestamp`` verify option);
    ``tolerance`` widens every boundary by the same number of seconds.
    """

    timestamp: Optional[float] = None
    tolerance: float = 0

    def now(self) -> float:
        if self.timestamp is not None:
            return self.timestamp
        return current_timestamp()

    def is_before(self, not_before: float) -> bool:
        """True while ``not_before`` lies in the future, allowing for skew."""
        return not_before > self.now() + self.tolerance

    def has_passed(self, deadline: float) -> bool:
        """True once ``deadline`` has been reached, allowing for skew."""
        return self.now() >= deadline + self.tolerance
