"""Reader for PCAN ``.trc`` trace files."""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Optional, Union

from canlink.frame import MAX_CAN_DATA_SIZE, CanFrame

_POSITION, _TIME, _TYPE, _ID, _LENGTH, _DATA, _END, _ERROR = range(8)

_NEWLINE = ord("\n")
_RETURN = ord("\r")
_SEMICOLON = ord(";")
_PARENTHESIS = ord(")")
_BLANKS = (ord(" "), ord("\t"))

_DEC = re.compile(rb"[0-9]+")
_HEX = re.compile(rb"[0-9A-Fa-f]+")
_FLOAT = re.compile(rb"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_U32_MAX = 0xFFFFFFFF


class TRCReadError(Exception):
    """A trace file could not be read or parsed."""


class _Cursor:
    """Character stream over the file contents."""

    def __init__(self, data: bytes = b"") -> None:
        self.data = data
        self.pos = 0
        self.eof = False

    def rewind(self) -> None:
        self.pos = 0
        self.eof = False

    def get(self) -> Optional[int]:
        if self.pos >= len(self.data):
            self.eof = True
            return None
        char = self.data[self.pos]
        self.pos += 1
        return char

    def skip_line(self) -> None:
        end = self.data.find(b"\n", self.pos)
        if end < 0:
            self.pos = len(self.data)
            self.eof = True
        else:
            self.pos = end + 1

    def _match(self, pattern: re.Pattern) -> Optional[bytes]:
        match = pattern.match(self.data, self.pos)
        if match is None:
            return None
        self.pos = match.end()
        if self.pos >= len(self.data):
            self.eof = True
        return match.group()

    def read_uint(self, base: int) -> Optional[int]:
        text = self._match(_DEC if base == 10 else _HEX)
        if text is None:
            return None
        value = int(text, base)
        return value if value <= _U32_MAX else None

    def read_float(self) -> Optional[float]:
        text = self._match(_FLOAT)
        if text is None:
            return None
        value = float(text)
        return value if math.isfinite(value) else None


class TRCReader:
    """Reads frames, one line at a time, from a trace file.

    Frame times are reported in microseconds.
    """

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self._file_name = ""
        self._cursor = _Cursor()
        self._current_pos = 0
        self._total_frames = 0
        self._last: tuple[int, CanFrame] = (0, CanFrame())
        if path is not None:
            self.load_file(path)

    def __enter__(self) -> TRCReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def file_name(self) -> str:
        return self._file_name

    @property
    def is_file_loaded(self) -> bool:
        return bool(self._file_name)

    @property
    def number_of_frames(self) -> int:
        return self._total_frames

    @property
    def current_pos(self) -> int:
        return self._current_pos

    @property
    def last_can_frame(self) -> tuple[int, CanFrame]:
        """The (time in microseconds, frame) pair of the last line read."""
        return self._last

    def load_file(self, path: Union[str, Path]) -> None:
        """Load and validate a trace file; raise TRCReadError if it is unusable."""
        self.unload_file()
        try:
            contents = Path(path).read_bytes()
        except OSError as exc:
            raise TRCReadError(f"cannot open {path}: {exc}") from exc
        self._file_name = str(path)
        self._cursor = _Cursor(contents)
        try:
            self._check_integrity()
        except TRCReadError:
            self.unload_file()
            raise
        self.reset()

    def unload_file(self) -> None:
        self._cursor = _Cursor()
        self._file_name = ""
        self._current_pos = 0
        self._total_frames = 0

    def close(self) -> None:
        """Release the loaded file."""
        self.unload_file()

    def reset(self) -> None:
        """Go back to the beginning of the file."""
        self._cursor.rewind()
        self._current_pos = 0

    def seek_position(self, pos: int) -> None:
        """Read up to and including the frame at index ``pos``."""
        if not self.is_file_loaded:
            raise TRCReadError("no trace file loaded")
        if pos < 0 or pos >= self._total_frames:
            raise IndexError(f"frame {pos} out of range (0..{self._total_frames - 1})")
        if self._current_pos == pos:
            return
        self.reset()
        while not self._cursor.eof:
            self._read_next_line()
            if self._current_pos == pos:
                return
        raise TRCReadError(f"frame {pos} not found")

    def read_next_can_frame(self) -> tuple[int, CanFrame]:
        """Read the next line and return the last (time, frame) pair.

        Malformed lines leave an empty pair, as at the end of the file.
        """
        if not self._cursor.eof:
            try:
                self._read_next_line()
            except TRCReadError:
                pass
        return self._last

    def _check_integrity(self) -> None:
        while not self._cursor.eof:
            self._read_next_line()
        self._total_frames = self._current_pos + 1

    def _read_next_line(self) -> bool:
        """Parse one record; return False on an empty one, raise on a malformed one."""
        cur = self._cursor
        self._last = (0, CanFrame())
        state = _POSITION
        position = time_us = can_id = length = 0
        data = bytearray()

        while True:
            char = cur.get()
            if char is None or char == _NEWLINE:
                break
            if char in _BLANKS:
                continue
            if char == _SEMICOLON:
                cur.skip_line()
                continue
            if char == _RETURN:
                if cur.get() == _NEWLINE:
                    break
                if not cur.eof:
                    cur.pos -= 1
                state = _ERROR
                break

            cur.pos -= 1
            failed = False

            if state == _POSITION:
                value = cur.read_uint(10)
                if value is None:
                    failed = True
                else:
                    position = value
                    if cur.get() != _PARENTHESIS:
                        state = _ERROR
            elif state == _TIME:
                seconds = cur.read_float()
                if seconds is None:
                    failed = True
                else:
                    time_us = int(seconds * 1000)
            elif state == _TYPE:
                if cur.get() is None or cur.get() is None:
                    state = _ERROR
            elif state == _ID:
                value = cur.read_uint(16)
                if value is None:
                    failed = True
                else:
                    can_id = value
            elif state == _LENGTH:
                value = cur.read_uint(16)
                if value is None:
                    failed = True
                else:
                    length = value
            elif state == _DATA:
                value = cur.read_uint(16)
                if value is None:
                    failed = True
                elif value > 0xFF:
                    state = _ERROR
                else:
                    data.append(value)
                    if len(data) < length:
                        state -= 1

            if failed:
                cur.skip_line()
                cur.get()
                state = _ERROR
            if state == _ERROR:
                break
            state += 1

        if state not in (_END, _POSITION):
            raise TRCReadError(f"malformed record in {self._file_name}")
        if state == _POSITION:
            return False
        if len(data) != length:
            raise TRCReadError(f"data length mismatch in {self._file_name}")

        self._current_pos = position - 1
        payload = bytes(data) if len(data) <= MAX_CAN_DATA_SIZE else b""
        self._last = (time_us, CanFrame(True, can_id, payload))
        return True