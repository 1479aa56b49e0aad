"""
Pydantic models for device snapshots and pushed gauge samples.

Defines:
- PropertyValue: a self-describing value from the D-Bus property bag.
- DeviceSnapshot: one immutable observation of the target device.
- GaugeSamples: the two gauge values pushed per tick plus their labels.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, model_validator

UNKNOWN_PERCENTAGE = -1
"""Sentinel battery percentage meaning unknown or unavailable."""


class PropertyValue(NamedTuple):
    """A D-Bus variant: type signature plus the decoded value.

    ``value`` may be ``None`` when the stack reports a property with no
    usable value.
    """

    signature: str
    value: Any


class DeviceSnapshot(BaseModel):
    """A single observation of the target Bluetooth device.

    Attributes:
        name: Human-readable device label, empty when unknown.
        address: Hardware address, uppercase colon-separated octets, or an
            empty string when the stack did not report one.
        connected: True iff the controller reports an active link.
        paired: True iff the device is in the controller's paired set.
        percentage: Battery level in [0, 100], or -1 when unknown.
            Always -1 for unpaired devices.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    address: str = ""
    connected: bool = False
    paired: bool = False
    percentage: int = UNKNOWN_PERCENTAGE

    @model_validator(mode="after")
    def _check_percentage(self) -> DeviceSnapshot:
        """Enforce the percentage range and the unpaired sentinel."""
        if self.percentage != UNKNOWN_PERCENTAGE and not 0 <= self.percentage <= 100:
            raise ValueError(
                f"percentage must be -1 or within 0..100 (got {self.percentage})"
            )
        if not self.paired and self.percentage != UNKNOWN_PERCENTAGE:
            raise ValueError("percentage must be -1 for an unpaired device")
        return self


class GaugeSamples(BaseModel):
    """Gauge values for one tick, ready for the gateway client.

    Attributes:
        battery_level: Value of the ``battery_level`` gauge.
        connected: Value of the ``connected`` gauge (1.0 or 0.0).
        labels: Grouping labels shared by both samples. The job label is
            added by the gateway client, not here.
    """

    model_config = ConfigDict(frozen=True)

    battery_level: float
    connected: float
    labels: dict[str, str]
