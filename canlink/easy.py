"""One-stop set-up of every CAN interface for sending and sniffing."""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional

from canlink.helpers import create_can_helpers, deallocate_can_helpers, get_interfaces
from canlink.sender import CanSender
from canlink.sniffer import CanSniffer, OnReceive, OnTimeout


class CanEasy:
    """Initializes all interfaces at one bitrate and keeps their senders and a sniffer."""

    def __init__(self) -> None:
        self._senders: Dict[str, CanSender] = {}
        self._initialized: set[str] = set()
        self.sniffer = CanSniffer()

    def __enter__(self) -> CanEasy:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finalize()

    @property
    def initialized_ifaces(self) -> FrozenSet[str]:
        return frozenset(self._initialized)

    def initialize(
        self,
        bitrate: int,
        on_receive: Optional[OnReceive] = None,
        on_timeout: Optional[OnTimeout] = None,
    ) -> None:
        """Set up every interface; without ``on_receive`` only for sending."""
        receiving = on_receive is not None
        helpers = create_can_helpers(bitrate)
        if receiving:
            self.sniffer.on_receive = on_receive
            self.sniffer.on_timeout = on_timeout
        for interface, helper in helpers.items():
            self._senders[interface] = helper.allocate_sender()
            if receiving:
                receiver = helper.allocate_receiver()
                receiver.interface = interface
                self.sniffer.add_receiver(receiver)
            self._initialized.add(interface)

    def get_can_ifaces(self) -> set[str]:
        """All CAN interfaces visible, initialized or not."""
        return get_interfaces()

    def get_sender(self, interface: str) -> Optional[CanSender]:
        return self._senders.get(interface)

    def finalize(self) -> None:
        """Stop every sender and release the interfaces."""
        for sender in self._senders.values():
            sender.finalize()
        self._senders.clear()
        self._initialized.clear()
        self.sniffer.close()
        deallocate_can_helpers()