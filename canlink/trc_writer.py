"""Writer for PCAN ``.trc`` trace files."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, TextIO, Union

from canlink.frame import CanFrame
from canlink.timestamp import TimeStamp

TRC_FILE_HEADER = ";$FILEVERSION=1.1\n;\n"


class TRCWriteError(Exception):
    """Writing was attempted without an open trace file."""


class TRCWriter:
    """Appends received frames to a trace file, numbering them from 1."""

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self._file: Optional[TextIO] = None
        self._counter = 0
        if path is not None:
            self.open(path)

    def __enter__(self) -> TRCWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self, path: Union[str, Path]) -> None:
        """Create (or truncate) ``path`` and write the file header."""
        self.close()
        self._file = open(path, "w", encoding="ascii", newline="\n")
        self._file.write(TRC_FILE_HEADER)

    def close(self) -> None:
        self._counter = 0
        if self._file is not None:
            self._file.close()
            self._file = None

    def write(self, frame: CanFrame, timestamp: TimeStamp) -> None:
        """Append one frame line, with its time in milliseconds."""
        if self._file is None:
            raise TRCWriteError("trace file is not open")
        self._counter += 1
        millis = timestamp.seconds * 1000 + timestamp.micro_sec / 1000
        data = frame.data
        line = (
            f"{f'{self._counter})':>8}"
            f"{f'{millis:.1f}':>12}"
            f"{'Rx':>4}"
            f"{f'{frame.can_id:08X}':>13}"
            f"{len(data):>3}"
            "  "
            + "".join(f"{octet:02X} " for octet in data)
            + "\n"
        )
        self._file.write(line)
        self._file.flush()