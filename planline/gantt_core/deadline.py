"""Read deadlines checked cooperatively by the scheduling algorithms."""

from __future__ import annotations

import time
from typing import Callable, Optional

from planline.gantt_core.errors import ReadTimeoutError


class Deadline:
    """A point on the monotonic clock after which a read gives up."""

    def __init__(self, timeout: Optional[float], clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = timeout
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self, stage: str = "read") -> None:
        if self.expired:
            raise ReadTimeoutError(f"Deadline of {self.timeout}s exceeded during {stage}")


def ensure_deadline(deadline: Optional[Deadline]) -> Deadline:
    return deadline if deadline is not None else Deadline.never()
