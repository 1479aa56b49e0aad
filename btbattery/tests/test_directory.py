"""
Unit tests for the Bluetooth directory.

Tests verify:
- Introspection XML is parsed into full device handles.
- An adapter without devices yields an empty list.
- Malformed XML and bus failures raise DirectoryError.
- resolve() matches addresses case-insensitively, skips unreadable
  devices, and returns None when nothing matches.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest
from btbattery.src.controller import BusError
from btbattery.src.directory import (
    BluetoothDirectory,
    DirectoryError,
    parse_introspection,
)
from btbattery.src.reader import DeviceReader

_BLUEZ_ADAPTER_XML = """\
<!DOCTYPE node PUBLIC "-//freedesktop//DTD D-BUS Object Introspection 1.0//EN"
"http://www.freedesktop.org/standards/dbus/1.0/introspect.dtd">
<node>
  <interface name="org.freedesktop.DBus.Introspectable">
    <method name="Introspect"><arg name="xml" type="s" direction="out"/></method>
  </interface>
  <interface name="org.bluez.Adapter1">
    <property name="Address" type="s" access="read"/>
  </interface>
  <node name="dev_AA_BB_CC_DD_EE_FF"/>
  <node name="dev_11_22_33_44_55_66"/>
</node>
"""


def _directory(controller) -> BluetoothDirectory:
    return BluetoothDirectory(controller, DeviceReader(controller))


class TestParseIntrospection:
    """parse_introspection() turns child nodes into handles."""

    def test_parses_child_nodes(self) -> None:
        handles = parse_introspection(_BLUEZ_ADAPTER_XML, "/org/bluez/hci0")

        assert handles == [
            "/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF",
            "/org/bluez/hci0/dev_11_22_33_44_55_66",
        ]

    def test_ignores_nested_grandchildren(self) -> None:
        xml_text = '<node><node name="dev_A"><node name="service0001"/></node></node>'

        assert parse_introspection(xml_text, "/org/bluez/hci0") == [
            "/org/bluez/hci0/dev_A"
        ]

    def test_no_children_is_empty(self) -> None:
        xml_text = '<node><interface name="org.bluez.Adapter1"/></node>'

        assert parse_introspection(xml_text, "/org/bluez/hci0") == []

    def test_trailing_slash_on_root_path(self) -> None:
        xml_text = '<node><node name="dev_A"/></node>'

        assert parse_introspection(xml_text, "/org/bluez/hci0/") == [
            "/org/bluez/hci0/dev_A"
        ]

    def test_malformed_xml_raises(self) -> None:
        with pytest.raises(DirectoryError, match="malformed"):
            parse_introspection("<node><node name=", "/org/bluez/hci0")

    def test_unexpected_root_element_raises(self) -> None:
        with pytest.raises(DirectoryError, match="unexpected"):
            parse_introspection("<interface/>", "/org/bluez/hci0")


class TestListDevices:
    """list_devices() queries the controller root."""

    @pytest.mark.asyncio
    async def test_lists_known_devices(self, controller) -> None:
        first = controller.add_device("AA:BB:CC:DD:EE:FF")
        second = controller.add_device("11:22:33:44:55:66")

        handles = await _directory(controller).list_devices()

        assert sorted(handles) == sorted([first, second])

    @pytest.mark.asyncio
    async def test_empty_adapter(self, controller) -> None:
        assert await _directory(controller).list_devices() == []

    @pytest.mark.asyncio
    async def test_bus_failure_raises_directory_error(self, controller) -> None:
        controller.introspect_error = BusError(
            "org.freedesktop.DBus.Error.ServiceUnknown"
        )

        with pytest.raises(DirectoryError, match="cannot enumerate"):
            await _directory(controller).list_devices()

    @pytest.mark.asyncio
    async def test_malformed_response_raises_directory_error(self, controller) -> None:
        controller.introspect_xml = "not xml at all"

        with pytest.raises(DirectoryError):
            await _directory(controller).list_devices()


class TestResolve:
    """resolve() maps a configured address to a handle."""

    @pytest.mark.asyncio
    async def test_finds_matching_device(self, controller) -> None:
        controller.add_device("11:22:33:44:55:66", paired=True)
        target = controller.add_device("AA:BB:CC:DD:EE:FF", paired=True, percentage=77)

        handle = await _directory(controller).resolve("AA:BB:CC:DD:EE:FF")

        assert handle == target

    @pytest.mark.asyncio
    async def test_match_is_case_insensitive(self, controller) -> None:
        target = controller.add_device("AA:BB:CC:DD:EE:FF")

        assert await _directory(controller).resolve("aa:bb:cc:dd:ee:ff") == target

    @pytest.mark.asyncio
    async def test_returns_none_when_not_found(self, controller) -> None:
        controller.add_device("11:22:33:44:55:66")

        assert await _directory(controller).resolve("AA:BB:CC:DD:EE:FF") is None

    @pytest.mark.asyncio
    async def test_skips_unreadable_devices(self, controller) -> None:
        broken = controller.add_device("11:22:33:44:55:66")
        target = controller.add_device("AA:BB:CC:DD:EE:FF")
        controller.failing_handles.add(broken)

        assert await _directory(controller).resolve("AA:BB:CC:DD:EE:FF") == target

    @pytest.mark.asyncio
    async def test_enumeration_failure_propagates(self, controller) -> None:
        controller.introspect_error = BusError("no adapter")

        with pytest.raises(DirectoryError):
            await _directory(controller).resolve("AA:BB:CC:DD:EE:FF")
