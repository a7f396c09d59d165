"""Timestamps with microsecond resolution and monotonic-clock helpers."""

from __future__ import annotations

import time
from dataclasses import dataclass

_MICROS_PER_SECOND = 1_000_000
_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MILLI = 1_000_000


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // denominator
    return quotient if numerator >= 0 else -quotient


def elapsed_millis(start_ns: int, end_ns: int) -> int:
    """Milliseconds from ``start_ns`` to ``end_ns`` (nanosecond clock readings).

    Whole seconds and the sub-second remainders are compared separately,
    the remainder difference being truncated toward zero.
    """
    start_s, start_n = divmod(start_ns, _NANOS_PER_SECOND)
    end_s, end_n = divmod(end_ns, _NANOS_PER_SECOND)
    return (end_s - start_s) * 1000 + _trunc_div(end_n - start_n, _NANOS_PER_MILLI)


def add_millis(time_ns: int, millis: int) -> int:
    """Return the nanosecond clock reading ``millis`` milliseconds after ``time_ns``."""
    return time_ns + millis * _NANOS_PER_MILLI


@dataclass(frozen=True, order=True)
class TimeStamp:
    """A point in time split into seconds and microseconds."""

    seconds: int = 0
    micro_sec: int = 0

    @classmethod
    def now(cls) -> TimeStamp:
        """Current reading of the monotonic clock."""
        micros = time.monotonic_ns() // 1000
        return cls(micros // _MICROS_PER_SECOND, micros % _MICROS_PER_SECOND)

    @classmethod
    def _from_millis(cls, millis: int) -> TimeStamp:
        return cls(millis // 1000, (millis % 1000) * 1000)

    def _subtract(self, other: TimeStamp) -> TimeStamp:
        seconds, micro = self.seconds, self.micro_sec
        if other.micro_sec > micro:
            if other.seconds >= seconds:
                return TimeStamp()
            micro += _MICROS_PER_SECOND
            seconds -= 1
        if other.seconds > seconds:
            return TimeStamp()
        return TimeStamp(seconds - other.seconds, micro - other.micro_sec)

    def _add(self, other: TimeStamp) -> TimeStamp:
        seconds = self.seconds + other.seconds
        micro = self.micro_sec + other.micro_sec
        if micro > _MICROS_PER_SECOND:
            micro -= _MICROS_PER_SECOND
            seconds += 1
        return TimeStamp(seconds, micro)

    def __add__(self, other: object) -> TimeStamp:
        if isinstance(other, TimeStamp):
            return self._add(other)
        if isinstance(other, int):
            return self.add_millis(other)
        return NotImplemented

    def __sub__(self, other: object) -> TimeStamp:
        if isinstance(other, TimeStamp):
            return self._subtract(other)
        if isinstance(other, int):
            return self.sub_millis(other)
        return NotImplemented

    def add_millis(self, millis: int) -> TimeStamp:
        """Return this timestamp moved ``millis`` milliseconds forward."""
        return self._add(self._from_millis(millis))

    def sub_millis(self, millis: int) -> TimeStamp:
        """Return this timestamp moved ``millis`` milliseconds back, floored at zero."""
        return self._subtract(self._from_millis(millis))

    def total_seconds(self) -> float:
        """The timestamp as a number of seconds."""
        return self.seconds + self.micro_sec / _MICROS_PER_SECOND