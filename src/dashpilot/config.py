"""Library configuration for dashpilot."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from dashpilot._constants import (
    DATA_SCREEN_INTERVAL,
    DEFAULT_BAUD_RATE,
    DEFAULT_BUFFER_SIZE,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_PROTOCOL,
    GAUGE_SCREEN_INTERVAL,
)
from dashpilot.exceptions import DashPilotConfigError


def _env_bool(value: str | None, default: bool | None) -> bool | None:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _default_preferences_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base) / "dashpilot" / "settings.json"


@dataclasses.dataclass(frozen=True)
class DashPilotConfig:
    """Runtime configuration.

    Parameters
    ----------
    preferences_path : Path
        Location of the persisted preference record (JSON).
    baud_rate : int
        Serial baud rate passed to the adapter driver.
    protocol : str
        Driver protocol hint (``"elm327"``, ``"obd2"`` or ``"custom"``).
    buffer_size : int
        Driver receive buffer size in bytes.
    command_timeout : float
        Seconds to wait for one response line before giving up on a command.
    data_poll_interval : float
        Poll period for the full data screen, in seconds.
    gauge_poll_interval : float
        Poll period for the speedometer gauge, in seconds.
    read_timeout : float
        Granularity of a single blocking serial read, in seconds.
    bluetooth_enabled : bool or None
        Force the Bluetooth capability on or off.  ``None`` detects it
        from the host platform at startup.
    """

    preferences_path: Path = dataclasses.field(default_factory=_default_preferences_path)
    baud_rate: int = DEFAULT_BAUD_RATE
    protocol: str = DEFAULT_PROTOCOL
    buffer_size: int = DEFAULT_BUFFER_SIZE
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    data_poll_interval: float = DATA_SCREEN_INTERVAL
    gauge_poll_interval: float = GAUGE_SCREEN_INTERVAL
    read_timeout: float = 0.1
    bluetooth_enabled: bool | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.preferences_path, Path):
            object.__setattr__(self, "preferences_path", Path(self.preferences_path))
        if self.protocol not in {"elm327", "obd2", "custom"}:
            raise DashPilotConfigError(f"Unsupported driver protocol: {self.protocol!r}")
        if self.baud_rate <= 0 or self.buffer_size <= 0:
            raise DashPilotConfigError("baud_rate and buffer_size must be positive")
        for name in ("command_timeout", "data_poll_interval", "gauge_poll_interval", "read_timeout"):
            if getattr(self, name) <= 0:
                raise DashPilotConfigError(f"{name} must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> DashPilotConfig:
        """Create configuration from environment variables.

        Reads optional ``DASHPILOT_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        DashPilotConfig
            Populated configuration.

        Raises
        ------
        DashPilotConfigError
            If a numeric variable cannot be parsed or a value is out of range.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        path_env = env.get("DASHPILOT_PREFERENCES_PATH")
        if path_env:
            config_kwargs["preferences_path"] = Path(path_env).expanduser()

        protocol_env = env.get("DASHPILOT_PROTOCOL")
        if protocol_env:
            config_kwargs["protocol"] = protocol_env.strip().lower()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "DASHPILOT_BAUD_RATE": ("baud_rate", int),
            "DASHPILOT_BUFFER_SIZE": ("buffer_size", int),
            "DASHPILOT_COMMAND_TIMEOUT": ("command_timeout", float),
            "DASHPILOT_DATA_POLL_INTERVAL": ("data_poll_interval", float),
            "DASHPILOT_GAUGE_POLL_INTERVAL": ("gauge_poll_interval", float),
            "DASHPILOT_READ_TIMEOUT": ("read_timeout", float),
        }
        for env_key, (field_name, caster) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = caster(val)
            except ValueError as exc:
                raise DashPilotConfigError(f"{env_key} is not a valid {caster.__name__}: {val!r}") from exc

        if "bluetooth_enabled" not in overrides:
            config_kwargs["bluetooth_enabled"] = _env_bool(env.get("DASHPILOT_BLUETOOTH"), None)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
