"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all termbridge settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Section names are single words so TERMBRIDGE_SECTION_FIELD splits cleanly
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)

SHELL_MODES = ("persistent", "stateless")


@dataclass(frozen=True)
class BusConfig:
    """Message bus (Redis pub/sub) configuration."""
    host: str = "redis"
    port: int = 6379
    password: str = "password"
    db: int = 0
    command_channel: str = "terminal:commands"
    result_channel: str = "terminal:results"
    connect_retries: int = 5
    retry_delay_seconds: float = 2.0


@dataclass(frozen=True)
class ShellConfig:
    """Shell session configuration."""
    mode: str = "persistent"
    argv: tuple[str, ...] = ("bash", "-l")
    term: str = "xterm-256color"
    command_timeout_seconds: float = 30.0
    ready_timeout_seconds: float = 5.0
    default_home: str = "/home/nonroot"

    def __post_init__(self) -> None:
        if self.mode not in SHELL_MODES:
            raise ValueError(
                f"Unknown shell mode '{self.mode}'. Expected one of: {', '.join(SHELL_MODES)}"
            )


@dataclass(frozen=True)
class ServerConfig:
    """Receive loop configuration."""
    workers: int = 8


@dataclass(frozen=True)
class ValidationConfig:
    """Command and result validation configuration."""
    blacklist: tuple[str, ...] = ("rm", "shutdown")
    max_output_chars: int = 10_000


@dataclass(frozen=True)
class ClientConfig:
    """Bus client configuration."""
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class TermbridgeConfig:
    """Root configuration for the termbridge application."""
    bus: BusConfig = field(default_factory=BusConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"
    log_json: bool = False


def _env_override(data: dict, prefix: str = "TERMBRIDGE") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern TERMBRIDGE_SECTION_KEY.
    For example: TERMBRIDGE_BUS_HOST=localhost, TERMBRIDGE_VALIDATION_BLACKLIST=rm,reboot
    """
    top_level = {"log_level", "log_json"}
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in top_level:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        elif len(parts) == 1:
            data[parts[0]] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a JSON object", path)
        return {}
    return data


def _to_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    return bool(value)


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        data = {}
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    for f in dataclasses.fields(cls):
        if f.name not in filtered:
            continue
        val = filtered[f.name]

        # Comma-separated strings or lists become tuples
        if f.type == "tuple[str, ...]":
            if isinstance(val, str):
                filtered[f.name] = tuple(v.strip() for v in val.split(",") if v.strip())
            elif isinstance(val, list):
                filtered[f.name] = tuple(str(v) for v in val)
        elif f.type == "int" and isinstance(val, str):
            filtered[f.name] = int(val)
        elif f.type == "float" and isinstance(val, (str, int)):
            filtered[f.name] = float(val)
        elif f.type == "bool":
            filtered[f.name] = _to_bool(val)

    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "TERMBRIDGE",
) -> TermbridgeConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (TERMBRIDGE_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to termbridge.json in CWD.
        env_prefix: Environment variable prefix. Defaults to TERMBRIDGE.
    """
    config_path = Path(path) if path else Path("termbridge.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    return TermbridgeConfig(
        bus=_build_sub_config(BusConfig, data.get("bus", {})),
        shell=_build_sub_config(ShellConfig, data.get("shell", {})),
        server=_build_sub_config(ServerConfig, data.get("server", {})),
        validation=_build_sub_config(ValidationConfig, data.get("validation", {})),
        client=_build_sub_config(ClientConfig, data.get("client", {})),
        telemetry=_build_sub_config(TelemetryConfig, data.get("telemetry", {})),
        log_level=str(data.get("log_level", "WARNING")).upper(),
        log_json=_to_bool(data.get("log_json", False)),
    )
