"""Timing and port configuration for matrix65 sessions."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Mapping

import tomllib


DEFAULT_BAUD_RATE = 2_000_000

SleepCallable = Callable[[float], object]


class ConfigError(ValueError):
    """Raised when a matrix65 configuration file fails validation."""


@dataclass(frozen=True)
class MonitorTiming:
    """Real-time delays the monitor protocol depends on.

    ``write_delay`` follows every command written to the monitor,
    ``keypress_delay`` matches the keyboard scan rate, ``reset_delay`` covers
    the boot sequence and ``mode_switch_delay`` the warm switch into C64
    mode. ``read_timeout`` is handed to the serial port.
    """

    write_delay: float = 0.02
    keypress_delay: float = 0.02
    reset_delay: float = 4.0
    mode_switch_delay: float = 1.0
    read_timeout: float = 0.01
    sleep: SleepCallable = field(default=time.sleep, compare=False, repr=False)

    def pause(self, seconds: float) -> None:
        if seconds > 0:
            self.sleep(seconds)

    @classmethod
    def immediate(cls) -> "MonitorTiming":
        """Return a timing profile without any real delays."""

        return cls(
            write_delay=0.0,
            keypress_delay=0.0,
            reset_delay=0.0,
            mode_switch_delay=0.0,
            read_timeout=0.0,
        )


@dataclass(frozen=True)
class Matrix65Config:
    """Resolved settings for one CLI invocation."""

    port: str | None = None
    baud_rate: int = DEFAULT_BAUD_RATE
    timing: MonitorTiming = field(default_factory=MonitorTiming)

    def with_overrides(
        self, *, port: str | None = None, baud_rate: int | None = None
    ) -> "Matrix65Config":
        """Return a copy where explicitly supplied values win."""

        return replace(
            self,
            port=port if port is not None else self.port,
            baud_rate=baud_rate if baud_rate is not None else self.baud_rate,
        )


_TIMING_KEYS = tuple(
    item.name for item in fields(MonitorTiming) if item.name != "sleep"
)


def load_config(config_path: Path) -> Matrix65Config:
    """Parse and validate the TOML configuration at ``config_path``."""

    with config_path.open("rb") as stream:
        try:
            raw_data = tomllib.load(stream)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {config_path}: {exc}") from exc

    section = raw_data.get("matrix65")
    if section is None:
        raise ConfigError("configuration requires a [matrix65] table")
    if not isinstance(section, Mapping):
        raise ConfigError("[matrix65] section must be a mapping")

    port = section.get("port")
    if port is not None and not isinstance(port, str):
        raise ConfigError("port must be a string")

    baud_rate = _coerce_baud_rate(section.get("baud_rate", DEFAULT_BAUD_RATE))
    timing = _parse_timing(section.get("timing", {}))
    return Matrix65Config(port=port, baud_rate=baud_rate, timing=timing)


def _coerce_baud_rate(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"baud_rate must be an integer, received {raw!r}")
    if raw <= 0:
        raise ConfigError(f"baud_rate must be positive, received {raw}")
    return raw


def _parse_timing(raw: Any) -> MonitorTiming:
    if not isinstance(raw, Mapping):
        raise ConfigError("[matrix65.timing] section must be a mapping")

    unknown = sorted(set(raw) - set(_TIMING_KEYS))
    if unknown:
        raise ConfigError(f"unknown timing keys: {', '.join(unknown)}")

    values: dict[str, float] = {}
    for key in _TIMING_KEYS:
        if key not in raw:
            continue
        value = raw[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"timing.{key} must be a number")
        if value < 0:
            raise ConfigError(f"timing.{key} must not be negative")
        values[key] = float(value)
    return MonitorTiming(**values)


__all__ = [
    "ConfigError",
    "DEFAULT_BAUD_RATE",
    "Matrix65Config",
    "MonitorTiming",
    "load_config",
]
