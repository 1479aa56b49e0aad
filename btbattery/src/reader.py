"""
Device reader: turn a handle into a :class:`DeviceSnapshot`.

Performs a bulk ``GetAll`` on ``org.bluez.Device1`` and, for paired devices
only, on ``org.bluez.Battery1``. Each property is projected to its Python
type with an explicit branch for "absent or null":

- Connected, Paired: bool, default False.
- Name, Address: str, default "" (Address is uppercased).
- Percentage: int clamped to 0..100, default -1.

A transport failure on either call raises :class:`ReadError`; no partial
snapshot is ever returned.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from btbattery.src.controller import BATTERY_INTERFACE, DEVICE_INTERFACE, BusError
from btbattery.src.models import UNKNOWN_PERCENTAGE, DeviceSnapshot, PropertyValue

if TYPE_CHECKING:
    from btbattery.src.controller import Controller

logger = logging.getLogger(__name__)

_INTEGER_SIGNATURES = frozenset("ynqiuxt")
"""D-Bus basic integer type codes (byte, int16 ... uint64)."""


class ReadError(Exception):
    """The device properties could not be fetched."""


class DeviceReader:
    """Reads the current state of a device from the controller.

    Args:
        controller: Controller access capability.
    """

    def __init__(self, controller: Controller) -> None:
        self._controller = controller

    async def read(self, handle: str) -> DeviceSnapshot:
        """Fetch a complete snapshot of the device at *handle*.

        Raises:
            ReadError: If any bus call fails.
        """
        try:
            props = await self._controller.read_properties(handle, DEVICE_INTERFACE)
            paired = _as_bool(props, "Paired")
            percentage = UNKNOWN_PERCENTAGE
            if paired:
                battery = await self._controller.read_properties(
                    handle, BATTERY_INTERFACE
                )
                percentage = _as_percentage(battery, "Percentage")
        except BusError as exc:
            raise ReadError(f"cannot read {handle}: {exc}") from exc

        return DeviceSnapshot(
            name=_as_str(props, "Name"),
            address=_as_str(props, "Address").upper(),
            connected=_as_bool(props, "Connected"),
            paired=paired,
            percentage=percentage,
        )


# ---------------------------------------------------------------------------
# Typed projections
# ---------------------------------------------------------------------------


def _lookup(props: Mapping[str, PropertyValue], key: str) -> PropertyValue | None:
    """Return the property or None when it is absent or null-valued."""
    prop = props.get(key)
    if prop is None or prop.value is None:
        return None
    return prop


def _as_bool(props: Mapping[str, PropertyValue], key: str) -> bool:
    prop = _lookup(props, key)
    if prop is None:
        return False
    if prop.signature != "b":
        logger.debug("Ignoring %s with signature %r", key, prop.signature)
        return False
    return bool(prop.value)


def _as_str(props: Mapping[str, PropertyValue], key: str) -> str:
    prop = _lookup(props, key)
    if prop is None:
        return ""
    return str(prop.value)


def _as_percentage(props: Mapping[str, PropertyValue], key: str) -> int:
    """Project a battery level to an int in 0..100, or -1 if unusable."""
    prop = _lookup(props, key)
    if prop is None:
        return UNKNOWN_PERCENTAGE
    if prop.signature in _INTEGER_SIGNATURES:
        level = int(prop.value)
    elif prop.signature == "d":
        level = round(float(prop.value))
    else:
        logger.debug("Ignoring %s with signature %r", key, prop.signature)
        return UNKNOWN_PERCENTAGE
    return min(max(level, 0), 100)
