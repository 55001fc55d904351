"""
Adapter configuration for extipam.

This module defines the configuration dataclass for the adapter, providing a
centralized place for all configurable parameters.

Configuration is read from a YAML settings file. Both the smart-proxy style
keys (``:url:``, ``:user:``, ``:password:``, ``:default_group:``,
``:verify_ssl:``) and the upper-case field names are accepted. Environment
variables named ``EXTIPAM_<FIELD>`` override the file.

Usage:
    from extipam.config import load_config

    config = load_config("/etc/extipam/bluecat.yml")
    config.RESERVATION_TTL_SECONDS = 900
"""

import os
from dataclasses import dataclass, fields

import yaml

from extipam.exceptions import ConfigError
from extipam.models.enums import LogLevel, ResponseEnvelope

ENV_PREFIX = "EXTIPAM_"

# Smart-proxy settings keys -> dataclass field names
_KEY_ALIASES = {
    "url": "URL",
    "user": "USER",
    "username": "USER",
    "password": "PASSWORD",
    "default_group": "DEFAULT_GROUP",
    "verify_ssl": "VERIFY_SSL",
    "verify_tls": "VERIFY_SSL",
    "auth_header": "AUTH_HEADER",
}


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class AdapterConfig:
    """
    External IPAM adapter configuration.

    Attributes:
        URL: Provider base URL, e.g. ``https://bam.example.com``.
        USER: API user name.
        PASSWORD: API password.
        DEFAULT_GROUP: Group used when a request names none.
        RESERVATION_TTL_SECONDS: How long a handed-out address is protected
            from being handed out again while the provider catches up.
        LOG_LEVEL: Logging verbosity level.
    """

    # -------------------------------------------------------------------------
    # Provider Configuration
    # -------------------------------------------------------------------------

    URL: str = ""
    USER: str = ""
    PASSWORD: str = ""
    DEFAULT_GROUP: str = ""
    VERIFY_SSL: bool = True
    AUTH_HEADER: str = "Authorization"
    API_PATH: str = "/Services/REST/v1/"
    RESPONSE_ENVELOPE: ResponseEnvelope = ResponseEnvelope.AUTO
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    AUTH_FAILURE_STATUS: int = 401

    # -------------------------------------------------------------------------
    # Allocation Configuration
    # -------------------------------------------------------------------------

    # Must exceed the delay before the provider marks a handed-out address used
    RESERVATION_TTL_SECONDS: int = 600
    # Background sweep of expired reservations (0 disables, lazy sweep remains)
    RESERVATION_SWEEP_INTERVAL_SECONDS: int = 60
    # Candidates checked per allocation before giving up
    MAX_ALLOCATION_RETRIES: int = 16
    # Addresses probed when walking past a stale provider candidate
    LINEAR_SCAN_LIMIT: int = 256

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------

    BIND_IP: str = "127.0.0.1"
    PORT: int = 8450

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def get_api_base(self) -> str:
        """
        Get the provider REST base URL.

        Returns:
            URL string like "https://bam.example.com/Services/REST/v1/"
        """
        return self.URL.rstrip("/") + "/" + self.API_PATH.strip("/") + "/"

    def validate(self) -> None:
        """
        Check required settings and value ranges.

        Raises:
            ConfigError: On the first problem found.
        """
        missing = [name for name in ("URL", "USER", "PASSWORD") if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing).lower()}")

        if not self.URL.startswith(("http://", "https://")):
            raise ConfigError(f"url must start with http:// or https://, got '{self.URL}'")

        for name in (
            "RESERVATION_TTL_SECONDS",
            "MAX_ALLOCATION_RETRIES",
            "LINEAR_SCAN_LIMIT",
            "REQUEST_TIMEOUT_SECONDS",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name.lower()} must be positive")

        if self.RESERVATION_SWEEP_INTERVAL_SECONDS < 0:
            raise ConfigError("reservation_sweep_interval_seconds must not be negative")

    def redacted(self) -> dict:
        """Settings as a dict with the password masked, for display."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        if values["PASSWORD"]:
            values["PASSWORD"] = "********"
        return values


# =============================================================================
# Loading
# =============================================================================


def _coerce(name: str, value):
    """Convert a raw YAML or environment value to the field's type."""
    default = getattr(AdapterConfig, name)
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, LogLevel):
            return LogLevel(str(value).lower())
        if isinstance(default, ResponseEnvelope):
            return ResponseEnvelope(str(value).lower())
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name.lower()}: {value!r} ({e})")
    return "" if value is None else str(value)


def _field_name(key: str) -> str | None:
    key = str(key).lstrip(":")
    if key.lower() in _KEY_ALIASES:
        return _KEY_ALIASES[key.lower()]
    upper = key.upper()
    if upper in {f.name for f in fields(AdapterConfig)}:
        return upper
    return None


def load_config(path: str | None = None, environ: dict | None = None) -> AdapterConfig:
    """
    Build a config from an optional YAML file and the environment.

    Args:
        path: YAML settings file. None skips the file.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated AdapterConfig.

    Raises:
        ConfigError: If the file cannot be read or a value is invalid.
    """
    config = AdapterConfig()
    environ = os.environ if environ is None else environ

    if path:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file '{path}': {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in '{path}': {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file '{path}' must contain a mapping")

        for key, value in data.items():
            name = _field_name(key)
            if name is None:
                continue
            setattr(config, name, _coerce(name, value))

    for f in fields(AdapterConfig):
        env_value = environ.get(ENV_PREFIX + f.name)
        if env_value is not None:
            setattr(config, f.name, _coerce(f.name, env_value))

    config.validate()
    return config
