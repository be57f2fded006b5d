"""Bridge configuration: defaults, TOML loading and validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional, Tuple

try:  # Python 3.11+
    import tomllib as _toml
except ModuleNotFoundError:  # pragma: no cover
    import tomli as _toml  # type: ignore

from .comm import DEFAULT_BAUDRATE, DEFAULT_READ_TIMEOUT
from .discovery import DEFAULT_IDENTIFIERS
from .udp import DEFAULT_RECEIVE_TIMEOUT

_logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Configuration file or value is invalid."""


@dataclass(frozen=True)
class BridgeConfig:
    receive_host: str = "0.0.0.0"
    receive_port: int = 8000
    target_host: str = "0.0.0.0"
    target_port: int = 9000
    serial_device: Optional[str] = None
    baudrate: int = DEFAULT_BAUDRATE
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: Optional[float] = None
    receive_timeout: Optional[float] = DEFAULT_RECEIVE_TIMEOUT
    groups: Tuple[str, ...] = ()
    identifiers: Tuple[str, ...] = field(default=DEFAULT_IDENTIFIERS)
    retry_interval: float = 1.0
    stats_interval: float = 1.0
    verbose: int = 0

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "BridgeConfig":
        """
        Build a config from a parsed TOML document.

        Recognised tables are [udp], [serial] and [bridge]; unknown keys are
        ignored with a warning.
        """
        udp_cfg = _table(config, "udp")
        serial_cfg = _table(config, "serial")
        bridge_cfg = _table(config, "bridge")

        values: dict = {}
        for table, keys in (
            (udp_cfg, ("receive_host", "receive_port", "target_host", "target_port", "receive_timeout", "groups")),
            (serial_cfg, ("device", "baudrate", "read_timeout", "write_timeout", "identifiers")),
            (bridge_cfg, ("retry_interval", "stats_interval", "verbose")),
        ):
            for key in list(table):
                if key not in keys:
                    _logger.warning("Ignoring unknown config key: %s", key)
                    continue
                values["serial_device" if key == "device" else key] = table[key]

        return cls().with_overrides(**values)

    def with_overrides(self, **overrides: Any) -> "BridgeConfig":
        """Return a copy with every non-None override applied and validated."""
        known = {f.name for f in fields(self)}
        changes = {}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown setting: {key}")
            if value is None:
                continue
            changes[key] = _coerce(key, value)
        return replace(self, **changes)


_INTS = ("receive_port", "target_port", "baudrate", "verbose")
_FLOATS = ("read_timeout", "write_timeout", "receive_timeout", "retry_interval", "stats_interval")
_LISTS = ("groups", "identifiers")


def _table(config: Mapping[str, Any], name: str) -> dict:
    table = config.get(name, {})
    if not isinstance(table, Mapping):
        raise ConfigError(f"[{name}] must be a table, not {type(table).__name__}")
    return dict(table)


def _coerce(key: str, value: Any) -> Any:
    try:
        if key in _INTS:
            value = int(value)
        elif key in _FLOATS:
            value = float(value)
        elif key in _LISTS:
            if isinstance(value, str):
                value = [value]
            value = tuple(str(v) for v in value)
        else:
            value = str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e

    if key in ("receive_port", "target_port") and not (0 <= value <= 0xFFFF):
        raise ConfigError(f"{key} out of range: {value}")
    if key in _FLOATS and value <= 0:
        raise ConfigError(f"{key} must be greater than zero: {value}")
    return value


def load_config(config_path: str = "config.toml") -> dict:
    """
    Load configuration from TOML file.
    Returns:
        Parsed document, or {} if the file does not exist
    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    try:
        with open(config_path, "rb") as f:
            return _toml.load(f)
    except FileNotFoundError:
        _logger.warning("Config file %s not found. Using default values.", config_path)
        return {}
    except (OSError, _toml.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to parse config {config_path}: {e}") from e
