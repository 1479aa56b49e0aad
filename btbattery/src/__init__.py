"""
Bluetooth battery agent package.

Samples the connection state and battery level of one paired Bluetooth
device through the local BlueZ stack and pushes them as gauges to a
Prometheus Pushgateway.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
