"""Common interface of the CAN backends."""

from __future__ import annotations

import abc

from canlink.receiver import CanReceiver
from canlink.sender import CanSender


class CanHelper(abc.ABC):
    """Sets up one CAN interface and hands out senders and receivers for it."""

    backend: str = ""

    def __enter__(self) -> CanHelper:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finalize()

    @abc.abstractmethod
    def initialize(self, interface: str, bitrate: int) -> None:
        """Prepare ``interface`` at ``bitrate``; raise OSError on failure."""

    @abc.abstractmethod
    def finalize(self) -> None:
        """Release the interface."""

    @abc.abstractmethod
    def initialized(self) -> bool:
        """True if the interface is already set up."""

    @abc.abstractmethod
    def allocate_sender(self) -> CanSender:
        """Create a sender for the interface."""

    @abc.abstractmethod
    def allocate_receiver(self) -> CanReceiver:
        """Create a receiver for the interface."""