"""Identifier/mask acceptance filters."""

from __future__ import annotations

import functools
from dataclasses import dataclass


@functools.total_ordering
@dataclass(frozen=True)
class CanFilter:
    """Accepts identifiers whose masked bits equal the filter's masked identifier."""

    can_id: int = 0
    mask: int = 0
    filter_ext: bool = False
    filter_std: bool = False

    def _key(self) -> tuple[int, int, bool, bool]:
        return (self.can_id, self.mask, self.filter_std, self.filter_ext)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CanFilter):
            return NotImplemented
        return self._key() < other._key()

    def matches(self, can_id: int) -> bool:
        """True if ``can_id`` passes this filter."""
        return (self.can_id & self.mask) == (can_id & self.mask)