"""Base class for sources of received CAN frames."""

from __future__ import annotations

import abc
from typing import FrozenSet, Iterable, Optional, Tuple

from canlink.filter import CanFilter
from canlink.frame import CanFrame
from canlink.timestamp import TimeStamp

Reception = Tuple[CanFrame, TimeStamp]


class CanReceiver(abc.ABC):
    """Receives frames from one interface, with optional user-space filtering.

    Subclasses supply a file descriptor to wait on and a way to read a frame.
    """

    def __init__(self, interface: str = "") -> None:
        self.interface = interface
        self._filters: FrozenSet[CanFilter] = frozenset()

    @property
    def filters(self) -> FrozenSet[CanFilter]:
        return self._filters

    def set_filters(self, filters: Iterable[CanFilter]) -> None:
        """Replace the acceptance filters checked by :meth:`filter`."""
        self._filters = frozenset(filters)

    def filter(self, can_id: int) -> bool:
        """True if ``can_id`` passes any filter, or if no filters are set."""
        if not self._filters:
            return True
        return any(flt.matches(can_id) for flt in self._filters)

    @abc.abstractmethod
    def fileno(self) -> int:
        """File descriptor that becomes readable when a frame is available."""

    @abc.abstractmethod
    def receive(self) -> Optional[Reception]:
        """Read one frame; return ``(frame, timestamp)`` or None if nothing valid was read."""