"""Waits on several receivers and dispatches the frames they deliver."""

from __future__ import annotations

import select
from typing import Callable, Iterable, List, Optional

from canlink.filter import CanFilter
from canlink.frame import CanFrame
from canlink.receiver import CanReceiver
from canlink.timestamp import TimeStamp

OnReceive = Callable[[CanFrame, TimeStamp, str], None]
OnTimeout = Callable[[], object]


class CanSniffer:
    """Multiplexes receivers and calls back for each accepted frame or timeout."""

    def __init__(
        self,
        on_receive: Optional[OnReceive] = None,
        on_timeout: Optional[OnTimeout] = None,
    ) -> None:
        self.on_receive = on_receive
        self.on_timeout = on_timeout
        self._receivers: List[CanReceiver] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def number_of_receivers(self) -> int:
        return len(self._receivers)

    def add_receiver(self, receiver: CanReceiver) -> None:
        self._receivers.append(receiver)

    def set_filters(self, filters: Iterable[CanFilter]) -> None:
        filters = frozenset(filters)
        for receiver in self._receivers:
            receiver.set_filters(filters)

    def reset(self) -> None:
        """Allow :meth:`sniff` to loop again after :meth:`finish`."""
        self._running = True

    def finish(self) -> None:
        """Make :meth:`sniff` return after its current wait."""
        self._running = False

    def close(self) -> None:
        """Drop all receivers."""
        self._receivers.clear()

    def sniff(self, timeout: int) -> None:
        """Wait for frames, ``timeout`` milliseconds at a time, until finished."""
        if not self._receivers:
            raise RuntimeError("no receivers to sniff")
        if self.on_receive is None:
            raise RuntimeError("no receive callback set")
        if self.on_timeout is None:
            raise RuntimeError("no timeout callback set")

        while True:
            watched = [receiver for receiver in self._receivers if receiver.fileno() >= 0]
            if not watched:
                return
            readable, _, _ = select.select(watched, [], [], timeout / 1000)
            if readable:
                ready = set(map(id, readable))
                for receiver in watched:
                    if id(receiver) not in ready:
                        continue
                    reception = receiver.receive()
                    if reception is None:
                        continue
                    frame, stamp = reception
                    if receiver.filter(frame.can_id):
                        self.on_receive(frame, stamp, receiver.interface)
            else:
                self.on_timeout()
            if not self._running:
                return