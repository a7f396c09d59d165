"""Periodic transmission of CAN frames from a background thread."""

from __future__ import annotations

import abc
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Union

from canlink.frame import CanFrame
from canlink.timestamp import add_millis, elapsed_millis

import time

OnSendCallback = Callable[[int], bytes]


def _copy_frame(frame: CanFrame) -> CanFrame:
    return CanFrame(frame.extended_format, frame.can_id, frame.data)


class FrameRing:
    """A cyclic sequence of frames sent one after another within one period (ms)."""

    def __init__(
        self,
        period: int,
        callback: Optional[OnSendCallback] = None,
        frames: Iterable[CanFrame] = (),
    ) -> None:
        self.period = period
        self.callback = callback
        self.frames: List[CanFrame] = [_copy_frame(frame) for frame in frames]
        self.position = 0
        self.tx_timestamp: Optional[int] = None

    def push_frame(self, frame: CanFrame) -> None:
        self.frames.append(_copy_frame(frame))
        self.position = 0

    def shift(self) -> None:
        """Move to the next frame, wrapping round to the first."""
        if self.position == len(self.frames):
            return
        self.position += 1
        if self.position == len(self.frames):
            self.position = 0

    def current_period(self) -> int:
        """Delay before the current frame; the last one absorbs the rounding loss."""
        count = len(self.frames)
        if count == 0:
            return 0
        share = self.period // count
        if self.position + 1 == count:
            return self.period - share * (count - 1)
        return share

    def current_frame(self) -> CanFrame:
        return self.frames[self.position]

    def ids(self) -> List[int]:
        return [frame.can_id for frame in self.frames]


class CanSender(abc.ABC):
    """Keeps a set of frame rings and transmits them on schedule.

    Subclasses implement :meth:`_send_frame` to put one frame on the bus.
    """

    def __init__(self) -> None:
        self._rings: List[FrameRing] = []
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._thread = threading.Thread(target=self.run, name="can-sender", daemon=True)
        self._thread.start()

    def __enter__(self) -> CanSender:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finalize()

    @abc.abstractmethod
    def _send_frame(self, frame: CanFrame) -> None:
        """Transmit one frame."""

    def finalize(self) -> None:
        """Stop the transmission thread and wait for it."""
        if self._finished.is_set():
            return
        self._finished.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def send_frame(
        self, frame: CanFrame, period: int, callback: Optional[OnSendCallback] = None
    ) -> None:
        """Send ``frame`` every ``period`` milliseconds."""
        self.send_frames([frame], period, callback)

    def send_frames(
        self,
        frames: Sequence[CanFrame],
        period: int,
        callback: Optional[OnSendCallback] = None,
    ) -> None:
        """Send ``frames`` in order, all of them within every ``period`` milliseconds.

        A ring already sending the same identifiers in the same order is replaced.
        """
        if not frames:
            raise ValueError("no frames to send")
        ring = FrameRing(period, callback, frames)
        with self._lock:
            index = self._find_ring(ring.ids())
            if index is not None:
                del self._rings[index]
            self._rings.append(ring)

    def send_frame_once(self, frame: CanFrame) -> None:
        """Transmit ``frame`` a single time, right away."""
        self._send_frame(frame)

    def unsend_frame(self, can_id: int) -> None:
        self.unsend_frames([can_id])

    def unsend_frames(self, ids: Sequence[int]) -> None:
        """Stop sending the ring whose identifiers are exactly ``ids``, in order."""
        with self._lock:
            index = self._find_ring(ids)
            if index is not None:
                del self._rings[index]

    def is_sent(self, ids: Union[int, Sequence[int]]) -> bool:
        """True if a ring with exactly these identifiers, in order, is being sent."""
        if isinstance(ids, int):
            ids = [ids]
        with self._lock:
            return self._find_ring(ids) is not None

    def _find_ring(self, ids: Sequence[int]) -> Optional[int]:
        wanted = list(ids)
        for index, ring in enumerate(self._rings):
            if ring.ids() == wanted:
                return index
        return None

    def run(self) -> None:
        """Transmission loop; runs until :meth:`finalize` is called."""
        while not self._finished.is_set():
            now = time.monotonic_ns()
            with self._lock:
                for ring in self._rings:
                    self._service(ring, now)
            self._finished.wait(0.001)

    def _service(self, ring: FrameRing, now: int) -> None:
        start = ring.tx_timestamp
        if start is not None and abs(elapsed_millis(start, now)) < ring.current_period():
            return
        frame = ring.current_frame()
        if ring.callback is not None:
            try:
                frame.data = ring.callback(frame.can_id)
            except ValueError:
                pass
        self._send_frame(frame)
        ring.shift()
        if start is None:
            ring.tx_timestamp = now
            return
        expected = add_millis(start, ring.current_period())
        if abs(elapsed_millis(expected, now)) < ring.current_period():
            ring.tx_timestamp = expected
        else:
            ring.tx_timestamp = now