"""Clock Port - injectable source of the current time."""

from abc import ABC, abstractmethod


class ClockPort(ABC):
    """Source of the current time in unix seconds.

    Everything that compares against time buckets or ban expiry takes a
    clock so tests can move time explicitly.
    """

    @abstractmethod
    def now(self) -> int:
        """Return the current time as integer unix seconds."""
        pass
