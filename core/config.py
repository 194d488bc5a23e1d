"""Program options: built-in defaults, YAML option files and command line"""
import copy
import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

LOG = logging.getLogger("cncpad.config")

SYSTEM_OPTIONS_FILE = Path("/etc/cncpad.yaml")
USER_OPTIONS_FILE = Path.home() / ".cncpad.yaml"


class ConfigError(Exception):
    """Configuration fault that makes it impossible to start."""


@dataclass
class JogSettings:
    interval_ms: float = 100.0        # heartbeat period; there are 60,000 ms/min
    creep_interval_ms: float = 250.0  # pause after a creep before continuous jogging
    dead_range: float = 0.10          # analog stick noise floor, fraction of full scale
    xy_velocity_low: float = 300.0    # mm/min
    xy_velocity_med: float = 3000.0
    xy_creep_low: float = 0.5         # mm
    xy_creep_med: float = 1.0
    z_velocity_low: float = 250.0
    z_velocity_med: float = 500.0
    z_creep_low: float = 0.1
    z_creep_med: float = 1.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "JogSettings":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown jog settings: {', '.join(sorted(unknown))}")
        try:
            settings = cls(**{k: float(v) for k, v in data.items()})
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid jog settings: {e}") from e
        if settings.interval_ms <= 0 or settings.creep_interval_ms < 0:
            raise ConfigError("jog intervals must be positive")
        return settings

    def per_interval(self, mm_per_min: float) -> float:
        """Convert a velocity to the distance travelled in one jog interval."""
        return mm_per_min * self.interval_ms / 60000.0


DEFAULTS: Dict[str, Any] = {
    "port": "/dev/ttyUSB0",
    "baudrate": 115200,
    "controller_type": "grbl",
    "secret": None,
    "socket_address": "localhost",
    "socket_port": 8000,
    "access_token_lifetime": "30d",
    "z_probe_thickness": 20.0,
    "verbose": 0,
    "jog": {},
    "actions_map": {},
    "controller_mappings": {},
}


@dataclass
class Options:
    port: str = DEFAULTS["port"]
    baudrate: int = DEFAULTS["baudrate"]
    controller_type: str = DEFAULTS["controller_type"]
    secret: Optional[str] = None
    socket_address: str = DEFAULTS["socket_address"]
    socket_port: int = DEFAULTS["socket_port"]
    access_token_lifetime: str = DEFAULTS["access_token_lifetime"]
    z_probe_thickness: float = DEFAULTS["z_probe_thickness"]
    verbose: int = 0
    simulate: bool = False
    jog: JogSettings = field(default_factory=JogSettings)
    actions_map: Dict[str, Any] = field(default_factory=dict)
    controller_mappings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, simulate: bool = False) -> "Options":
        data = merge_options(DEFAULTS, data)
        try:
            return cls(
                port=str(data["port"]),
                baudrate=int(data["baudrate"]),
                controller_type=str(data["controller_type"]).lower(),
                secret=data.get("secret"),
                socket_address=str(data["socket_address"]),
                socket_port=int(data["socket_port"]),
                access_token_lifetime=str(data["access_token_lifetime"]),
                z_probe_thickness=float(data["z_probe_thickness"]),
                verbose=int(data.get("verbose") or 0),
                simulate=simulate,
                jog=JogSettings.from_dict(data.get("jog")),
                actions_map=dict(data.get("actions_map") or {}),
                controller_mappings=dict(data.get("controller_mappings") or {}),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid option value: {e}") from e


def merge_options(base: dict, override: dict) -> dict:
    """Recursively merge `override` into a copy of `base`; mappings merge, everything else replaces."""
    result = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_options(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_options_file(path, required=False) -> dict:
    path = Path(path).expanduser()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        if required:
            raise ConfigError(f"option file {path} not found")
        LOG.debug("no option file at %s", path)
        return {}
    except (OSError, yaml.YAMLError) as e:
        if required:
            raise ConfigError(f"unable to read option file {path}: {e}") from e
        LOG.warning("ignoring option file %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        if required:
            raise ConfigError(f"option file {path} must contain a mapping")
        LOG.warning("ignoring option file %s: not a mapping", path)
        return {}
    return data


def default_option_files():
    if sys.platform == "win32":
        return [USER_OPTIONS_FILE]
    return [SYSTEM_OPTIONS_FILE, USER_OPTIONS_FILE]


def load_options(cli_options: dict, config_path=None, simulate=False, search=None) -> Options:
    """Build the program options.

    `cli_options` holds only the values that were given explicitly on the
    command line; they win over every file.
    """
    merged: dict = {}
    for path in (default_option_files() if search is None else search):
        merged = merge_options(merged, load_options_file(path))
    if config_path:
        merged = merge_options(merged, load_options_file(config_path, required=True))
    explicit = {k: v for k, v in cli_options.items() if v is not None}
    merged = merge_options(merged, explicit)
    return Options.from_dict(merged, simulate=simulate)


_LIFETIME = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw]?)\s*$")
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_lifetime(value) -> timedelta:
    """Parse '30d', '12h', '3600' and the like."""
    match = _LIFETIME.match(str(value))
    if not match:
        raise ConfigError(f"invalid access token lifetime {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: float(amount)})


def read_cncrc_secret(path=None) -> str:
    """Return the CNCjs secret stored in ~/.cncrc."""
    home = os.environ.get("USERPROFILE" if sys.platform == "win32" else "HOME", "")
    path = Path(path) if path else Path(home) / ".cncrc"
    try:
        with open(path, "r", encoding="utf-8") as f:
            secret = json.load(f).get("secret")
    except (OSError, ValueError) as e:
        raise ConfigError(f"unable to read CNCjs secret from {path}: {e}") from e
    if not secret:
        raise ConfigError(f"no secret found in {path}")
    return secret
