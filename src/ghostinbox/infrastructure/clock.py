"""System clock adapter."""

import time

from ..domain.ports.clock_port import ClockPort


class SystemClock(ClockPort):
    """Wall clock in integer unix seconds."""

    def now(self) -> int:
        return int(time.time())
