"""
Metric shaper: convert a device snapshot into the two pushed gauges.

Pure function, no I/O. The ``address`` label is always the configured
target address, never the one observed in the snapshot, so the gateway
grouping stays stable across reads that return an empty address.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from btbattery.src.models import DeviceSnapshot, GaugeSamples

BATTERY_LEVEL_METRIC = "battery_level"
CONNECTED_METRIC = "connected"
ADDRESS_LABEL = "address"

DISCONNECTED_BATTERY_LEVEL = 0.0
"""Battery level reported while the device is not observable.

Disconnected and unreadable devices report 0, not -1, to stay compatible
with existing dashboards. This conflates "empty" with "unknown"; a reader
of ``battery_level`` must consult ``connected`` to tell them apart.
"""


def shape(snapshot: DeviceSnapshot | None, *, address: str) -> GaugeSamples:
    """Build the gauge values for one tick.

    Args:
        snapshot: The device observation, or None when the read failed.
        address: Configured target address used as the ``address`` label.

    Returns:
        ``battery_level`` equal to the snapshot percentage (including -1)
        when connected, otherwise 0; ``connected`` equal to 1.0 or 0.0.
    """
    labels = {ADDRESS_LABEL: address}
    if snapshot is not None and snapshot.connected:
        return GaugeSamples(
            battery_level=float(snapshot.percentage),
            connected=1.0,
            labels=labels,
        )
    return GaugeSamples(
        battery_level=DISCONNECTED_BATTERY_LEVEL,
        connected=0.0,
        labels=labels,
    )
