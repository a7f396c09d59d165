"""CAN frame representation."""

from __future__ import annotations

MAX_CAN_DATA_SIZE = 8


class CanFrame:
    """A classic CAN frame: identifier, format flag and up to 8 data bytes."""

    __slots__ = ("extended_format", "can_id", "_data")

    def __init__(self, extended_format: bool = False, can_id: int = 0, data: bytes = b"") -> None:
        self.extended_format = extended_format
        self.can_id = can_id
        self._data = b""
        self.data = data

    @property
    def data(self) -> bytes:
        return self._data

    @data.setter
    def data(self, value: bytes) -> None:
        value = bytes(value)
        if len(value) > MAX_CAN_DATA_SIZE:
            raise ValueError(
                f"CAN data holds at most {MAX_CAN_DATA_SIZE} bytes, got {len(value)}"
            )
        self._data = value

    def clear(self) -> None:
        """Reset identifier and data."""
        self.can_id = 0
        self._data = b""

    def hex_dump(self) -> str:
        """Data bytes as lowercase hex pairs, each followed by a space."""
        return "".join(f"{octet:02x} " for octet in self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CanFrame):
            return NotImplemented
        return (
            self.extended_format == other.extended_format
            and self.can_id == other.can_id
            and self._data == other._data
        )

    def __hash__(self) -> int:
        return hash((self.extended_format, self.can_id, self._data))

    def __repr__(self) -> str:
        return (
            f"CanFrame(extended_format={self.extended_format!r}, "
            f"can_id={self.can_id:#x}, data={self._data!r})"
        )