"""
Bluetooth directory: enumerate device handles under the adapter.

Operations:
- list_devices(): introspect the adapter root and return one handle per
  child node (``/org/bluez/hci0/dev_AA_BB_...``).
- resolve(address): find the handle whose reported address matches the
  configured one (case-insensitive).

Failures to introspect or parse are raised as :class:`DirectoryError`; the
caller treats them as fatal at startup. There is no retry at this layer.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

from btbattery.src.controller import BusError
from btbattery.src.reader import ReadError

if TYPE_CHECKING:
    from btbattery.src.controller import Controller
    from btbattery.src.reader import DeviceReader

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """The adapter could not be enumerated."""


def parse_introspection(xml_text: str, root_path: str) -> list[str]:
    """Turn an introspection document into a flat list of child handles.

    Only direct ``<node name="...">`` children of the root ``<node>`` are
    considered. Each child name is joined to *root_path*.

    Args:
        xml_text: Introspection XML returned by the adapter.
        root_path: Adapter object path the XML describes.

    Returns:
        Child handles in document order (may be empty).

    Raises:
        DirectoryError: If the document is not well-formed or its root
            element is not ``<node>``.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise DirectoryError(f"malformed introspection data: {exc}") from exc

    if root.tag != "node":
        raise DirectoryError(
            f"unexpected introspection root element <{root.tag}>"
        )

    base = root_path.rstrip("/")
    handles: list[str] = []
    for child in root.findall("node"):
        name = child.get("name")
        if name:
            handles.append(f"{base}/{name}")
    return handles


class BluetoothDirectory:
    """Enumerates devices known to one Bluetooth adapter.

    Args:
        controller: Controller access capability.
        reader: Device reader used by :meth:`resolve` to fetch addresses.
    """

    def __init__(self, controller: Controller, reader: DeviceReader) -> None:
        self._controller = controller
        self._reader = reader

    async def list_devices(self) -> list[str]:
        """Return handles of every device under the adapter.

        Order is whatever the adapter reports. An empty list means the
        adapter knows no devices.

        Raises:
            DirectoryError: If introspection fails or cannot be parsed.
        """
        try:
            xml_text = await self._controller.introspect_root()
        except BusError as exc:
            raise DirectoryError(f"cannot enumerate devices: {exc}") from exc
        handles = parse_introspection(xml_text, self._controller.root_path)
        logger.debug(
            "Adapter %s lists %d device(s)", self._controller.root_path, len(handles)
        )
        return handles

    async def resolve(self, address: str) -> str | None:
        """Return the handle of the device with *address*, or None.

        Devices whose properties cannot be read are skipped.

        Raises:
            DirectoryError: If the adapter cannot be enumerated.
        """
        wanted = address.upper()
        for handle in await self.list_devices():
            try:
                snapshot = await self._reader.read(handle)
            except ReadError as exc:
                logger.warning("Skipping %s during address lookup: %s", handle, exc)
                continue
            if snapshot.address.upper() == wanted:
                logger.info("Resolved %s to %s", address, handle)
                return handle
        return None
