import socket

import pytest

from canlink.filter import CanFilter
from canlink.frame import CanFrame
from canlink.receiver import CanReceiver
from canlink.sniffer import CanSniffer
from canlink.timestamp import TimeStamp


class PipeReceiver(CanReceiver):
    def __init__(self, sock, interface="vcan0"):
        super().__init__(interface)
        self.sock = sock

    def fileno(self):
        return self.sock.fileno()

    def receive(self):
        data = self.sock.recv(64)
        return CanFrame(False, data[0], data[1:]), TimeStamp(1, 2)


class ClosedReceiver(CanReceiver):
    def fileno(self):
        return -1

    def receive(self):
        return None


@pytest.fixture
def pipe():
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


def test_sniff_without_receivers_fails():
    sniffer = CanSniffer(lambda *a: None, lambda: True)
    with pytest.raises(RuntimeError):
        sniffer.sniff(10)


def test_sniff_without_callbacks_fails(pipe):
    sniffer = CanSniffer()
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    with pytest.raises(RuntimeError):
        sniffer.sniff(10)


def test_frame_is_dispatched(pipe):
    received = []
    sniffer = CanSniffer()

    def on_receive(frame, stamp, interface):
        received.append((frame, stamp, interface))
        sniffer.finish()

    sniffer.on_receive = on_receive
    sniffer.on_timeout = lambda: True
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    pipe[1].sendall(b"\x05ab")
    sniffer.sniff(1000)
    assert received == [(CanFrame(False, 5, b"ab"), TimeStamp(1, 2), "vcan0")]
    assert not sniffer.running


def test_timeout_callback(pipe):
    timeouts = []
    received = []
    sniffer = CanSniffer(lambda *args: received.append(args), None)

    def on_timeout():
        timeouts.append(1)
        sniffer.finish()

    sniffer.on_timeout = on_timeout
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    sniffer.sniff(10)
    assert timeouts == [1]
    assert received == []
    assert sniffer.running is False
    assert sniffer.number_of_receivers == 1


def test_filtered_frame_is_not_dispatched(pipe):
    received = []
    timeouts = []
    sniffer = CanSniffer(lambda *args: received.append(args))

    def on_timeout():
        timeouts.append(1)
        sniffer.finish()

    sniffer.on_timeout = on_timeout
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    sniffer.set_filters([CanFilter(0x07, 0xFF)])
    pipe[1].sendall(b"\x05ab")
    sniffer.sniff(50)
    assert received == []
    assert timeouts == [1]


def test_set_filters_reaches_receivers(pipe):
    receiver = PipeReceiver(pipe[0])
    sniffer = CanSniffer()
    sniffer.add_receiver(receiver)
    flt = CanFilter(0x100, 0x7FF)
    sniffer.set_filters([flt])
    assert receiver.filters == frozenset({flt})


def test_finished_sniffer_runs_one_round(pipe):
    timeouts = []
    sniffer = CanSniffer(lambda *a: None, lambda: timeouts.append(1))
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    sniffer.finish()
    sniffer.sniff(5)
    assert timeouts == [1]


def test_reset_lets_sniffer_loop_again(pipe):
    timeouts = []
    sniffer = CanSniffer(lambda *a: None)

    def on_timeout():
        timeouts.append(1)
        if len(timeouts) == 3:
            sniffer.finish()

    sniffer.on_timeout = on_timeout
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    sniffer.finish()
    sniffer.reset()
    assert sniffer.running
    sniffer.sniff(5)
    assert len(timeouts) == 3


def test_receivers_without_descriptor_end_sniffing():
    timeouts = []
    sniffer = CanSniffer(lambda *a: None, lambda: timeouts.append(1))
    sniffer.add_receiver(ClosedReceiver())
    sniffer.sniff(5)
    assert timeouts == []


def test_receiver_count_and_close(pipe):
    sniffer = CanSniffer()
    sniffer.add_receiver(PipeReceiver(pipe[0]))
    sniffer.add_receiver(ClosedReceiver())
    assert sniffer.number_of_receivers == 2
    sniffer.close()
    assert sniffer.number_of_receivers == 0