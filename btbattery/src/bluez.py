"""
BlueZ controller access over the system D-Bus.

Implements the :class:`~btbattery.src.controller.Controller` capability with
``dbus-fast``'s asyncio ``MessageBus``. Only two method calls are ever made:

- ``org.freedesktop.DBus.Introspectable.Introspect`` on the adapter path.
- ``org.freedesktop.DBus.Properties.GetAll`` on a device path.

Every call is bounded by ``timeout_s``. The agent never writes to the bus.

CHANGELOG:
- 2026-10-19: Wrap any failure of a pending call as BusError
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

from dbus_fast import BusType, Message, MessageType
from dbus_fast.aio import MessageBus
from dbus_fast.errors import AuthError

from btbattery.src.controller import (
    BLUEZ_SERVICE,
    DEFAULT_ADAPTER_PATH,
    BusError,
)
from btbattery.src.models import PropertyValue

logger = logging.getLogger(__name__)

INTROSPECTABLE_INTERFACE = "org.freedesktop.DBus.Introspectable"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

_MISSING_INTERFACE_ERRORS = frozenset(
    {
        "org.freedesktop.DBus.Error.InvalidArgs",
        "org.freedesktop.DBus.Error.UnknownInterface",
    }
)
"""Error names BlueZ returns from GetAll when the interface is not present."""

DEFAULT_TIMEOUT_S: float = 10.0


class BluezController:
    """Read-only BlueZ client bound to one adapter.

    Use :meth:`connect` to open the system bus; the instance owns the
    connection until :meth:`disconnect` is called.

    Args:
        bus: A connected ``dbus_fast.aio.MessageBus``.
        root_path: Adapter object path (default ``/org/bluez/hci0``).
        timeout_s: Upper bound for each bus call in seconds.
    """

    def __init__(
        self,
        bus: MessageBus,
        *,
        root_path: str = DEFAULT_ADAPTER_PATH,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._bus = bus
        self._root_path = root_path
        self._timeout_s = timeout_s

    @classmethod
    async def connect(
        cls,
        *,
        root_path: str = DEFAULT_ADAPTER_PATH,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> BluezController:
        """Connect to the system bus and return a controller.

        Raises:
            BusError: If the system bus is unreachable.
        """
        try:
            bus = await asyncio.wait_for(
                MessageBus(bus_type=BusType.SYSTEM).connect(),
                timeout=timeout_s,
            )
        except (AuthError, OSError, TimeoutError, ValueError) as exc:
            raise BusError(f"cannot connect to system bus: {exc}") from exc
        logger.info("Connected to system bus (adapter=%s)", root_path)
        return cls(bus, root_path=root_path, timeout_s=timeout_s)

    @property
    def root_path(self) -> str:
        return self._root_path

    def disconnect(self) -> None:
        """Close the underlying bus connection."""
        self._bus.disconnect()

    async def introspect_root(self) -> str:
        reply = await self._call(
            Message(
                destination=BLUEZ_SERVICE,
                path=self._root_path,
                interface=INTROSPECTABLE_INTERFACE,
                member="Introspect",
            )
        )
        if reply.message_type == MessageType.ERROR:
            raise BusError(
                f"Introspect {self._root_path} failed: "
                f"{reply.error_name}: {_error_text(reply)}"
            )
        return str(reply.body[0])

    async def read_properties(
        self, handle: str, interface: str
    ) -> dict[str, PropertyValue]:
        reply = await self._call(
            Message(
                destination=BLUEZ_SERVICE,
                path=handle,
                interface=PROPERTIES_INTERFACE,
                member="GetAll",
                signature="s",
                body=[interface],
            )
        )
        if reply.message_type == MessageType.ERROR:
            if reply.error_name in _MISSING_INTERFACE_ERRORS:
                logger.debug("%s does not implement %s", handle, interface)
                return {}
            raise BusError(
                f"GetAll {interface} on {handle} failed: "
                f"{reply.error_name}: {_error_text(reply)}"
            )
        return {
            name: PropertyValue(variant.signature, variant.value)
            for name, variant in reply.body[0].items()
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _call(self, message: Message) -> Message:
        """Send *message* and wait for the reply, bounded by the timeout."""
        try:
            reply = await asyncio.wait_for(
                self._bus.call(message), timeout=self._timeout_s
            )
        except TimeoutError as exc:
            raise BusError(
                f"{message.member} on {message.path} timed out "
                f"after {self._timeout_s}s"
            ) from exc
        except Exception as exc:
            raise BusError(
                f"{message.member} on {message.path} failed: {exc!r}"
            ) from exc
        if reply is None:
            raise BusError(f"{message.member} on {message.path} returned no reply")
        return reply


def _error_text(reply: Message) -> str:
    """Return the human-readable text of a D-Bus error reply, if any."""
    if reply.body:
        return str(reply.body[0])
    return ""
