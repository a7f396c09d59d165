import threading
import time

import pytest

from canlink.frame import CanFrame
from canlink.sender import CanSender, FrameRing


class RecordingSender(CanSender):
    def __init__(self):
        self.sent = []
        self._sent_lock = threading.Lock()
        super().__init__()

    def _send_frame(self, frame):
        with self._sent_lock:
            self.sent.append(CanFrame(frame.extended_format, frame.can_id, frame.data))

    def snapshot(self):
        with self._sent_lock:
            return list(self.sent)


def wait_for(condition, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.005)
    return condition()


@pytest.fixture
def sender():
    instance = RecordingSender()
    yield instance
    instance.finalize()


def make_frames(*ids):
    return [CanFrame(True, can_id, bytes([can_id & 0xFF])) for can_id in ids]


def test_empty_ring_has_zero_period_and_shift_is_noop():
    ring = FrameRing(100)
    assert ring.current_period() == 0
    ring.shift()
    assert ring.position == 0
    with pytest.raises(IndexError):
        ring.current_frame()


def test_single_frame_gets_whole_period():
    ring = FrameRing(100, frames=make_frames(1))
    assert ring.current_period() == 100


@pytest.mark.parametrize("period,count", [(100, 3), (1000, 7), (10, 4), (5, 5)])
def test_periods_of_one_cycle_add_up_to_period(period, count):
    ring = FrameRing(period, frames=make_frames(*range(1, count + 1)))
    total = 0
    for _ in range(count):
        total += ring.current_period()
        ring.shift()
    assert total == period


def test_shift_wraps_round():
    ring = FrameRing(30, frames=make_frames(1, 2, 3))
    seen = []
    for _ in range(4):
        seen.append(ring.current_frame().can_id)
        ring.shift()
    assert seen == [1, 2, 3, 1]


def test_push_frame_resets_position():
    ring = FrameRing(30, frames=make_frames(1, 2))
    ring.shift()
    ring.push_frame(CanFrame(True, 9))
    assert ring.position == 0
    assert ring.ids() == [1, 2, 9]


def test_ring_copies_frames():
    frame = CanFrame(True, 1, b"\x01")
    ring = FrameRing(10, frames=[frame])
    frame.data = b"\x02"
    assert ring.current_frame().data == b"\x01"


def test_send_frame_once_transmits_immediately(sender):
    frame = CanFrame(False, 0x123, b"\xAA")
    sender.send_frame_once(frame)
    assert sender.snapshot() == [frame]
    assert not sender.is_sent(0x123)


def test_send_frames_requires_frames(sender):
    with pytest.raises(ValueError):
        CanSender.send_frames(sender, [], 100)
    assert CanSender.is_sent(sender, []) is False


def test_is_sent_after_send_and_unsend(sender):
    sender.send_frame(CanFrame(True, 0x10, b"\x01"), 1000)
    assert sender.is_sent(0x10)
    assert sender.is_sent([0x10])
    sender.unsend_frame(0x10)
    assert not sender.is_sent(0x10)


def test_is_sent_requires_same_order(sender):
    sender.send_frames(make_frames(1, 2), 1000)
    assert sender.is_sent([1, 2])
    assert not sender.is_sent([2, 1])
    assert not sender.is_sent([1])


def test_resending_same_ids_replaces_ring(sender):
    sender.send_frame(CanFrame(True, 0x20, b"\x01"), 1000)
    sender.send_frame(CanFrame(True, 0x20, b"\x02"), 1000)
    sender.unsend_frame(0x20)
    assert not sender.is_sent(0x20)


def test_periodic_transmission(sender):
    frame = CanFrame(True, 0x30, b"\x05")
    sender.send_frame(frame, 10)
    assert wait_for(lambda: len(sender.snapshot()) >= 3)
    assert all(sent == frame for sent in sender.snapshot())


def test_ring_frames_sent_in_order(sender):
    sender.send_frames(make_frames(1, 2, 3), 30)
    assert wait_for(lambda: len(sender.snapshot()) >= 4)
    assert [frame.can_id for frame in sender.snapshot()[:4]] == [1, 2, 3, 1]


def test_callback_supplies_data(sender):
    sender.send_frame(CanFrame(True, 0x40), 10, lambda can_id: bytes([0x40, 0x01]))
    assert wait_for(lambda: len(sender.snapshot()) >= 1)
    assert sender.snapshot()[0].data == b"\x40\x01"


def test_finalize_stops_transmission():
    instance = RecordingSender()
    instance.send_frame(CanFrame(True, 0x50), 5)
    assert wait_for(lambda: len(instance.snapshot()) >= 1)
    instance.finalize()
    count = len(instance.snapshot())
    time.sleep(0.05)
    assert len(instance.snapshot()) == count
    instance.finalize()
    assert len(instance.snapshot()) == count