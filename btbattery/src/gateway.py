"""
Pushgateway client for the battery and connection gauges.

Each push renders a fresh ``prometheus_client`` registry holding the two
gauges in text exposition format and PUTs it to::

    {endpoint}/metrics/job/{job}/address/{address}

so both samples of a tick replace the previous group atomically. TLS
certificate verification is off by default so self-signed internal
gateways work out of the box; pass ``verify_tls=True`` to enforce it.

Operations:
- push(samples): send one tick's gauges, raising PushError on failure.
- group_url(labels): URL of the grouping key for the given labels.

CHANGELOG:
- 2026-10-19: Bound the whole push, not each phase, by the timeout
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import base64
import logging
from urllib.parse import quote

import httpx
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Gauge,
    generate_latest,
)

from btbattery.src.models import GaugeSamples
from btbattery.src.shaper import BATTERY_LEVEL_METRIC, CONNECTED_METRIC

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 10.0


class PushError(Exception):
    """The gateway rejected the push or could not be reached."""


class GatewayClient:
    """Pushes gauge samples to a Prometheus Pushgateway.

    Args:
        endpoint: Gateway base URL, e.g. ``http://localhost:9091/``.
        job: Value of the ``job`` grouping label.
        verify_tls: Verify the gateway's TLS certificate (default False).
        timeout_s: Timeout for the whole push in seconds.

    Raises:
        ValueError: If *endpoint* is not an http(s) URL or *job* is empty.

    Usage::

        gateway = GatewayClient("http://localhost:9091/", "battery")
        await gateway.push(shape(snapshot, address="AA:BB:CC:DD:EE:FF"))
    """

    def __init__(
        self,
        endpoint: str,
        job: str,
        *,
        verify_tls: bool = False,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        if not endpoint.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"Gateway endpoint must be an http(s) URL (got: '{endpoint}')"
            )
        if not job:
            raise ValueError("Gateway job name must not be empty")
        self._endpoint = endpoint.rstrip("/")
        self._job = job
        self._verify_tls = verify_tls
        self._timeout_s = timeout_s

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def group_url(self, labels: dict[str, str]) -> str:
        """Return the gateway URL for the job plus *labels* grouping key."""
        parts = [_encode_label("job", self._job)]
        parts.extend(_encode_label(name, value) for name, value in labels.items())
        return f"{self._endpoint}/metrics/{'/'.join(parts)}"

    async def push(self, samples: GaugeSamples) -> None:
        """PUT both gauges of *samples* to the gateway.

        Raises:
            PushError: On a network error, a timeout, or a non-2xx status.
        """
        url = self.group_url(samples.labels)
        body = _render(samples)

        try:
            async with httpx.AsyncClient(
                verify=self._verify_tls, timeout=self._timeout_s
            ) as client:
                response = await asyncio.wait_for(
                    client.put(
                        url,
                        content=body,
                        headers={"Content-Type": CONTENT_TYPE_LATEST},
                    ),
                    timeout=self._timeout_s,
                )
        except TimeoutError as exc:
            raise PushError(
                f"push to {url} timed out after {self._timeout_s}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise PushError(f"push to {url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise PushError(f"push to {url} failed: HTTP {response.status_code}")

        logger.debug(
            "Pushed battery_level=%s connected=%s to %s",
            samples.battery_level,
            samples.connected,
            url,
        )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _render(samples: GaugeSamples) -> bytes:
    """Render both gauges in Prometheus text exposition format."""
    registry = CollectorRegistry()
    Gauge(BATTERY_LEVEL_METRIC, "Battery level", registry=registry).set(
        samples.battery_level
    )
    Gauge(CONNECTED_METRIC, "Device connection state", registry=registry).set(
        samples.connected
    )
    return generate_latest(registry)


def _encode_label(name: str, value: str) -> str:
    """Encode one grouping-key segment pair for the gateway URL.

    Values that are empty or contain ``/`` use the gateway's ``@base64``
    form; everything else is percent-quoted.
    """
    if not value or "/" in value:
        encoded = base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")
        return f"{name}@base64/{encoded or '='}"
    return f"{name}/{quote(value, safe=':')}"
