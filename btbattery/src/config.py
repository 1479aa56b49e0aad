"""
Agent configuration from environment variables and command-line flags.

Uses Pydantic BaseSettings for loading and validation. Flags parsed by
argparse are passed in as init values; source order is customised so that
environment variables (and ``.env``) win over flags, and flags win over
defaults.

The legacy flag names ``--pep`` and ``--pj`` are still accepted as
aliases of ``--endpoint`` and ``--job``.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import argparse
import re
from collections.abc import Sequence

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

_ADDRESS_RE = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")

_MAX_DEFAULT_TIMEOUT_S = 10.0


class ConfigError(Exception):
    """Configuration could not be parsed or failed validation."""


class AgentSettings(BaseSettings):
    """Bluetooth battery agent configuration.

    Attributes:
        device: Target hardware address, canonicalized to uppercase.
        endpoint: Pushgateway base URL.
        job: Value of the ``job`` grouping label.
        interval: Seconds between samples.
        adapter: D-Bus object path of the Bluetooth adapter.
        tls_verify: Verify the gateway's TLS certificate. Off by default
            so self-signed internal gateways work.
        request_timeout_s: Bound for each bus call and push. Defaults to
            a third of ``interval``, at most 10 seconds.
        health_path: Health JSON file path; empty disables it.
    """

    device: str = "00:00:00:00:00:00"
    endpoint: str = "http://localhost:9091/"
    job: str = "battery"
    interval: int = 30
    adapter: str = "/org/bluez/hci0"
    tls_verify: bool = False
    request_timeout_s: float | None = None
    health_path: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment beats flags (init values), flags beat defaults."""
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("device")
    @classmethod
    def device_must_be_mac_address(cls, v: str) -> str:
        """Validate and uppercase the target hardware address."""
        v = v.strip()
        if not _ADDRESS_RE.match(v):
            raise ValueError(
                f"DEVICE must be six colon-separated hex octets (got: '{v}')"
            )
        return v.upper()

    @field_validator("endpoint")
    @classmethod
    def endpoint_must_be_http_url(cls, v: str) -> str:
        """Validate that the gateway endpoint is an http(s) URL."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"ENDPOINT must start with http:// or https:// (got: '{v}')"
            )
        return v

    @field_validator("job")
    @classmethod
    def job_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("JOB must not be empty")
        return v

    @field_validator("interval")
    @classmethod
    def interval_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("INTERVAL must be >= 1 second")
        return v

    @field_validator("adapter")
    @classmethod
    def adapter_must_be_object_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"ADAPTER must be a D-Bus object path (got: '{v}')")
        return v.rstrip("/") or "/"

    @model_validator(mode="after")
    def _bound_request_timeout(self) -> AgentSettings:
        """Keep every blocking call strictly shorter than one interval."""
        if self.request_timeout_s is None:
            self.request_timeout_s = min(_MAX_DEFAULT_TIMEOUT_S, self.interval / 3)
        elif not 0 < self.request_timeout_s < self.interval:
            raise ValueError(
                "REQUEST_TIMEOUT_S must be > 0 and < INTERVAL "
                f"(got {self.request_timeout_s} with interval {self.interval})"
            )
        return self


# ---------------------------------------------------------------------------
# Command-line flags
# ---------------------------------------------------------------------------


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigError instead of exiting with 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ConfigError(message)


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser. Every flag defaults to None."""
    parser = _ArgumentParser(
        prog="bt-battery-push",
        description=(
            "Push the battery level and connection state of a paired "
            "Bluetooth device to a Prometheus Pushgateway."
        ),
    )
    parser.add_argument("--device", help="Device Bluetooth MAC address")
    parser.add_argument(
        "--endpoint", "--pep", dest="endpoint", help="Prometheus Pushgateway endpoint"
    )
    parser.add_argument("--job", "--pj", dest="job", help="Prometheus job label")
    parser.add_argument("--interval", type=int, help="Interval seconds between samples")
    parser.add_argument("--adapter", help="BlueZ adapter object path")
    parser.add_argument(
        "--tls-verify",
        dest="tls_verify",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Verify the gateway TLS certificate",
    )
    parser.add_argument(
        "--request-timeout",
        dest="request_timeout_s",
        type=float,
        help="Timeout in seconds for each bus call and push",
    )
    parser.add_argument(
        "--health-path", dest="health_path", help="Health JSON file path"
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> dict[str, object]:
    """Parse flags and return only the ones given on the command line.

    Raises:
        ConfigError: On unknown flags or malformed values.
    """
    namespace = build_parser().parse_args(argv)
    return {key: value for key, value in vars(namespace).items() if value is not None}


def load_settings(argv: Sequence[str] | None = None) -> AgentSettings:
    """Build AgentSettings from environment, flags, and defaults.

    Raises:
        ConfigError: If flags cannot be parsed or validation fails.
    """
    flags = parse_args(argv)
    try:
        return AgentSettings(**flags)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
