"""SocketCAN backend: raw CAN sockets and interface set-up through ``ip``."""

from __future__ import annotations

import logging
import os
import socket
import struct
import subprocess
from typing import Iterable, List, Optional, Sequence

from canlink.backend import CanHelper
from canlink.filter import CanFilter
from canlink.frame import CanFrame
from canlink.receiver import CanReceiver, Reception
from canlink.sender import CanSender
from canlink.timestamp import TimeStamp

_log = logging.getLogger(__name__)

CAN_EFF_FLAG = 0x80000000
CAN_RTR_FLAG = 0x40000000
CAN_ERR_FLAG = 0x20000000
CAN_SFF_MASK = 0x000007FF
CAN_EFF_MASK = 0x1FFFFFFF

PF_CAN = getattr(socket, "PF_CAN", 29)
CAN_RAW = getattr(socket, "CAN_RAW", 1)
SOL_CAN_RAW = getattr(socket, "SOL_CAN_RAW", 101)
CAN_RAW_FILTER = getattr(socket, "CAN_RAW_FILTER", 1)
CAN_RAW_RECV_OWN_MSGS = getattr(socket, "CAN_RAW_RECV_OWN_MSGS", 4)
SO_TIMESTAMP = getattr(socket, "SO_TIMESTAMP", 29)
SO_TIMESTAMPING = getattr(socket, "SO_TIMESTAMPING", 37)

SOF_TIMESTAMPING_RX_SOFTWARE = 1 << 3
SOF_TIMESTAMPING_SOFTWARE = 1 << 4
SOF_TIMESTAMPING_RAW_HARDWARE = 1 << 6

_CAN_FRAME = struct.Struct("=IB3x8s")
_CAN_HEADER = struct.Struct("=IB")
_CAN_FILTER = struct.Struct("=II")
_TIME_PAIR = struct.Struct("@ll")

CAN_MTU = _CAN_FRAME.size
CANFD_MTU = 72
_ANC_BUFSIZE = (
    socket.CMSG_SPACE(_TIME_PAIR.size * 4 + 4) if hasattr(socket, "CMSG_SPACE") else 128
)

SYS_CLASS_NET_PATH = "/sys/class/net/"


def pack_frame(frame: CanFrame) -> bytes:
    """Encode ``frame`` as a kernel ``can_frame`` structure."""
    can_id = frame.can_id | (CAN_EFF_FLAG if frame.extended_format else 0)
    return _CAN_FRAME.pack(can_id, len(frame.data), frame.data)


def unpack_frame(data: bytes) -> CanFrame:
    """Decode a kernel ``can_frame`` or ``canfd_frame``; raise ValueError if invalid."""
    if len(data) < 8:
        raise ValueError(f"truncated CAN frame of {len(data)} bytes")
    raw_id, length = _CAN_HEADER.unpack_from(data)
    payload = data[8 : 8 + length]
    if len(payload) != length:
        raise ValueError("CAN frame shorter than its length field")
    return CanFrame(bool(raw_id & CAN_EFF_FLAG), raw_id & ~CAN_EFF_FLAG & 0xFFFFFFFF, payload)


def build_kernel_filters(filters: Iterable[CanFilter]) -> bytes:
    """Encode filters as an array of kernel ``can_filter`` structures, in filter order."""
    encoded = bytearray()
    for flt in sorted(set(filters)):
        can_id = flt.can_id & CAN_EFF_MASK
        mask = flt.mask & CAN_EFF_MASK
        if flt.filter_std == flt.filter_ext:
            mask &= ~CAN_EFF_FLAG & 0xFFFFFFFF
        else:
            mask |= CAN_EFF_FLAG
            if flt.filter_ext:
                can_id |= CAN_EFF_FLAG
            else:
                mask &= CAN_SFF_MASK
        encoded += _CAN_FILTER.pack(can_id, mask)
    return bytes(encoded)


class SocketCanSender(CanSender):
    """Sends frames through an already bound raw CAN socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        super().__init__()

    def _send_frame(self, frame: CanFrame) -> None:
        payload = pack_frame(frame)
        try:
            written = self._sock.send(payload)
        except OSError as exc:
            _log.warning("failed to send CAN frame %#x: %s", frame.can_id, exc)
            return
        if written != len(payload):
            _log.warning("short write of CAN frame %#x: %r bytes", frame.can_id, written)


def _extract_timestamp(ancdata: Sequence[tuple], default: TimeStamp) -> TimeStamp:
    stamp = default
    for level, kind, payload in ancdata:
        if level != socket.SOL_SOCKET:
            break
        if len(payload) < _TIME_PAIR.size:
            continue
        seconds, fraction = _TIME_PAIR.unpack_from(payload)
        if kind == SO_TIMESTAMP:
            stamp = TimeStamp(seconds, fraction)
        elif kind == SO_TIMESTAMPING:
            stamp = TimeStamp(seconds, fraction // 1000)
    return stamp


class SocketCanReceiver(CanReceiver):
    """Receives frames from a raw CAN socket; filtering happens in the kernel."""

    def __init__(self, sock: socket.socket, timestamp: bool = True, interface: str = "") -> None:
        super().__init__(interface)
        self._sock = sock
        self.timestamp = timestamp

    def set_filters(self, filters: Iterable[CanFilter]) -> None:
        """Install the filters in the kernel; raise on a closed socket or no filters."""
        filters = frozenset(filters)
        if self._sock.fileno() == -1:
            raise ValueError("socket is closed")
        if not filters:
            raise ValueError("no filters given")
        self._sock.setsockopt(SOL_CAN_RAW, CAN_RAW_FILTER, build_kernel_filters(filters))
        super().set_filters(filters)

    def filter(self, can_id: int) -> bool:
        return True

    def fileno(self) -> int:
        return self._sock.fileno()

    def receive(self) -> Optional[Reception]:
        try:
            data, ancdata, _flags, _address = self._sock.recvmsg(CANFD_MTU, _ANC_BUFSIZE)
        except OSError:
            return None
        try:
            frame = unpack_frame(data)
        except ValueError:
            return None
        stamp = TimeStamp()
        if self.timestamp:
            stamp = _extract_timestamp(ancdata, stamp)
        return frame, stamp


def _ip(*args: str) -> Optional[subprocess.CompletedProcess]:
    try:
        return subprocess.run(["ip", *args], capture_output=True, text=True, check=False)
    except OSError:
        return None


class SocketCanHelper(CanHelper):
    """Brings a SocketCAN interface up and opens a raw socket bound to it."""

    backend = "SocketCan"

    def __init__(self) -> None:
        self.interface = ""
        self._sock: Optional[socket.socket] = None
        self._timestamp = True

    @staticmethod
    def get_can_ifaces() -> set[str]:
        """Names of the network interfaces a raw CAN socket can bind to."""
        try:
            probe = socket.socket(PF_CAN, socket.SOCK_RAW, CAN_RAW)
        except OSError:
            return set()
        probe.close()
        try:
            names: List[str] = [name for _index, name in socket.if_nameindex()]
        except OSError:
            return set()
        found: set[str] = set()
        for name in names:
            try:
                sock = socket.socket(PF_CAN, socket.SOCK_RAW, CAN_RAW)
            except OSError:
                break
            try:
                sock.bind((name,))
                found.add(name)
            except OSError:
                pass
            finally:
                sock.close()
        return found

    def _is_virtual(self) -> bool:
        return "virtual" in os.path.realpath(SYS_CLASS_NET_PATH + self.interface)

    def _is_up(self) -> bool:
        result = _ip("link", "show", self.interface, "up")
        return result is not None and bool(result.stdout)

    def _bring_up(self) -> bool:
        result = _ip("link", "set", self.interface, "up")
        return result is not None and result.returncode == 0

    def _bring_down(self) -> bool:
        result = _ip("link", "set", self.interface, "down")
        return result is not None and result.returncode == 0

    def _set_bitrate(self, bitrate: int) -> bool:
        result = _ip("link", "set", self.interface, "type", "can", "bitrate", str(bitrate))
        return result is not None and result.returncode == 0

    def initialize(self, interface: str, bitrate: int) -> None:
        self.interface = interface
        if not self._is_up():
            if not self._is_virtual() and not self._set_bitrate(bitrate):
                raise OSError(f"cannot set bitrate {bitrate} on {interface}")
            if not self._bring_up():
                raise OSError(f"cannot bring {interface} up")

        sock = socket.socket(PF_CAN, socket.SOCK_RAW, CAN_RAW)
        flags = (
            SOF_TIMESTAMPING_SOFTWARE
            | SOF_TIMESTAMPING_RX_SOFTWARE
            | SOF_TIMESTAMPING_RAW_HARDWARE
        )
        try:
            sock.setsockopt(socket.SOL_SOCKET, SO_TIMESTAMPING, flags)
            self._timestamp = True
        except OSError:
            self._timestamp = False
        try:
            sock.bind((interface,))
            sock.setsockopt(SOL_CAN_RAW, CAN_RAW_RECV_OWN_MSGS, 0)
        except OSError:
            sock.close()
            raise
        self._sock = sock

    def finalize(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._bring_down()

    def initialized(self) -> bool:
        return self._is_up()

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeError("interface not initialized")
        return self._sock

    def allocate_sender(self) -> SocketCanSender:
        return SocketCanSender(self._require_socket())

    def allocate_receiver(self) -> SocketCanReceiver:
        return SocketCanReceiver(self._require_socket(), self._timestamp, self.interface)