"""
Shared test fixtures for the battery agent tests.

Provides:
- An autouse fixture that clears every agent env var and isolates the test
  from any ``.env`` file.
- FakeController: an in-memory stand-in for the BlueZ controller.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest
from btbattery.src.controller import (
    BATTERY_INTERFACE,
    DEFAULT_ADAPTER_PATH,
    DEVICE_INTERFACE,
    BusError,
)
from btbattery.src.models import PropertyValue

# All AgentSettings environment variable names, used for cleanup.
_ALL_AGENT_ENV_VARS = (
    "DEVICE",
    "ENDPOINT",
    "JOB",
    "INTERVAL",
    "ADAPTER",
    "TLS_VERIFY",
    "REQUEST_TIMEOUT_S",
    "HEALTH_PATH",
)


@pytest.fixture(autouse=True)
def _clean_agent_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all agent env vars and chdir away from any .env file."""
    for var in _ALL_AGENT_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


class FakeController:
    """In-memory controller holding per-handle, per-interface property bags.

    Handles listed in ``failing_handles`` raise BusError on every read.
    Setting ``introspect_error`` makes introspection raise it.
    """

    def __init__(self, root_path: str = DEFAULT_ADAPTER_PATH) -> None:
        self.root_path = root_path
        self.objects: dict[str, dict[str, dict[str, PropertyValue]]] = {}
        self.failing_handles: set[str] = set()
        self.introspect_error: Exception | None = None
        self.introspect_xml: str | None = None
        self.calls: list[tuple[str, str]] = []
        self.disconnected = False

    def add_device(
        self,
        address: str,
        *,
        name: str = "",
        connected: bool = False,
        paired: bool = False,
        percentage: int | None = None,
    ) -> str:
        """Register a device and return its handle."""
        handle = f"{self.root_path}/dev_{address.replace(':', '_')}"
        interfaces = {
            DEVICE_INTERFACE: {
                "Address": PropertyValue("s", address),
                "Name": PropertyValue("s", name),
                "Connected": PropertyValue("b", connected),
                "Paired": PropertyValue("b", paired),
            }
        }
        if percentage is not None:
            interfaces[BATTERY_INTERFACE] = {
                "Percentage": PropertyValue("y", percentage)
            }
        self.objects[handle] = interfaces
        return handle

    def set_connected(self, handle: str, connected: bool) -> None:
        self.objects[handle][DEVICE_INTERFACE]["Connected"] = PropertyValue(
            "b", connected
        )

    async def introspect_root(self) -> str:
        if self.introspect_error is not None:
            raise self.introspect_error
        if self.introspect_xml is not None:
            return self.introspect_xml
        children = "".join(
            f'<node name="{handle.rsplit("/", 1)[1]}"/>' for handle in self.objects
        )
        return (
            "<node>"
            '<interface name="org.bluez.Adapter1"></interface>'
            f"{children}"
            "</node>"
        )

    async def read_properties(
        self, handle: str, interface: str
    ) -> dict[str, PropertyValue]:
        self.calls.append((handle, interface))
        if handle in self.failing_handles or handle not in self.objects:
            raise BusError(f"org.freedesktop.DBus.Error.UnknownObject: {handle}")
        return dict(self.objects[handle].get(interface, {}))

    def disconnect(self) -> None:
        self.disconnected = True


@pytest.fixture()
def controller() -> FakeController:
    """An empty FakeController rooted at /org/bluez/hci0."""
    return FakeController()
