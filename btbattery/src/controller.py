"""
Narrow "controller access" capability used by the directory and reader.

The agent only needs two things from the Bluetooth stack: the introspection
XML of the adapter root and the property bag of one interface on one object
path. Both are expressed by the :class:`Controller` protocol so that the
real D-Bus binding (:mod:`btbattery.src.bluez`) and the in-memory fake used
in tests are interchangeable.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from btbattery.src.models import PropertyValue

BLUEZ_SERVICE = "org.bluez"
DEFAULT_ADAPTER_PATH = "/org/bluez/hci0"

DEVICE_INTERFACE = "org.bluez.Device1"
BATTERY_INTERFACE = "org.bluez.Battery1"


class BusError(Exception):
    """Transport-level failure talking to the Bluetooth stack.

    Raised for lost connections, timeouts, and D-Bus error replies other
    than "interface not present".
    """


class Controller(Protocol):
    """Read-only access to the local Bluetooth controller."""

    @property
    def root_path(self) -> str:
        """Object path of the adapter whose children are device handles."""
        ...

    async def introspect_root(self) -> str:
        """Return the introspection XML of :attr:`root_path`.

        Raises:
            BusError: If the call fails or times out.
        """
        ...

    async def read_properties(
        self, handle: str, interface: str
    ) -> dict[str, PropertyValue]:
        """Return every property of *interface* on *handle*.

        An empty mapping means the object does not implement *interface*.

        Raises:
            BusError: If the call fails or times out.
        """
        ...
