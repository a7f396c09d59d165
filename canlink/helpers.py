"""Registry of the CAN interfaces set up by the available backends."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping

from canlink.backend import CanHelper
from canlink.socketcan import SocketCanHelper

_helpers: Dict[str, CanHelper] = {}


def create_can_helpers(bitrate: int) -> Mapping[str, CanHelper]:
    """Set up every available interface at ``bitrate``, once; return them by name.

    Interfaces that fail to initialize are left out.
    """
    if not _helpers:
        for interface in sorted(SocketCanHelper.get_can_ifaces()):
            helper = SocketCanHelper()
            try:
                helper.initialize(interface, bitrate)
            except OSError:
                continue
            _helpers[interface] = helper
    return MappingProxyType(_helpers)


def deallocate_can_helpers() -> None:
    """Finalize and forget every interface set up by :func:`create_can_helpers`."""
    for helper in _helpers.values():
        helper.finalize()
    _helpers.clear()


def get_interfaces() -> set[str]:
    """Names of all CAN interfaces any backend can see."""
    return set(SocketCanHelper.get_can_ifaces())