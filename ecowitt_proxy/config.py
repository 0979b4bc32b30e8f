#!/usr/bin/env python3
"""
Configuration for hass-ecowitt-proxy.

Values are resolved per key with the following precedence:

    command-line flag  >  environment variable  >  YAML config file  >  default

Environment variables (first match wins):
    SERVER_ADDRESS / ECOWITT_PROXY_ADDRESS              listen address
    SERVER_PORT / ECOWITT_PROXY_PORT                    listen port (default 8181)
    HASS_URL / ECOWITT_PROXY_HASS_URL                   Home Assistant base URL
    HASS_AUTH_TOKEN / ECOWITT_PROXY_HASS_AUTH_TOKEN     Home Assistant auth token
    HASS_WEBHOOK_ID / ECOWITT_PROXY_HASS_WEBHOOK_ID     Home Assistant webhook id
    ECOWITT_PROXY_FORWARD_TIMEOUT                       forward timeout seconds (default 30, 0 = none)
    ECOWITT_PROXY_LOGLEVEL                              OFF, DEBUG, INFO, WARN, ERROR
    ECOWITT_PROXY_OUTPUT                                stdout, stderr or a filename

The config file defaults to ~/.hass-ecowitt-proxy.yaml when it exists.
"""

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .logging_utils import log_level_from_str

DEFAULT_PORT = 8181
DEFAULT_FORWARD_TIMEOUT = 30.0
DEFAULT_CONFIG_FILENAME = ".hass-ecowitt-proxy.yaml"

# option name -> (flag, environment variables, YAML key)
OPTION_SOURCES: Dict[str, Tuple[str, Tuple[str, ...], str]] = {
    "address": ("listen_address", ("SERVER_ADDRESS", "ECOWITT_PROXY_ADDRESS"), "listen"),
    "port": ("port", ("SERVER_PORT", "ECOWITT_PROXY_PORT"), "port"),
    "hass_url": ("hass_url", ("HASS_URL", "ECOWITT_PROXY_HASS_URL"), "hass_url"),
    "hass_auth_token": ("hass_auth_token", ("HASS_AUTH_TOKEN", "ECOWITT_PROXY_HASS_AUTH_TOKEN"), "hass_auth_token"),
    "hass_webhook_id": ("hass_webhook_id", ("HASS_WEBHOOK_ID", "ECOWITT_PROXY_HASS_WEBHOOK_ID"), "hass_webhook_id"),
    "forward_timeout": ("forward_timeout", ("ECOWITT_PROXY_FORWARD_TIMEOUT",), "forward_timeout"),
    "loglevel": ("loglevel", ("ECOWITT_PROXY_LOGLEVEL",), "loglevel"),
    "output": ("output", ("ECOWITT_PROXY_OUTPUT",), "output"),
}

DEFAULTS: Dict[str, Any] = {
    "address": "",
    "port": DEFAULT_PORT,
    "hass_url": "",
    "hass_auth_token": "",
    "hass_webhook_id": "",
    "forward_timeout": DEFAULT_FORWARD_TIMEOUT,
    "loglevel": "INFO",
    "output": "stdout",
}

REQUIRED = ("hass_url", "hass_auth_token", "hass_webhook_id")


class ConfigError(ValueError):
    """Invalid or incomplete configuration. ``problems`` lists every issue found."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


@dataclass(frozen=True)
class ServerOptions:
    address: str = ""
    port: int = DEFAULT_PORT

    hass_url: str = ""
    hass_auth_token: str = ""
    hass_webhook_id: str = ""

    forward_timeout: float = DEFAULT_FORWARD_TIMEOUT
    loglevel: str = "INFO"
    output: str = "stdout"
    config_file: Optional[str] = None

    @property
    def listen_addr(self) -> str:
        return f"{self.address}:{self.port}"

    def to_display_dict(self) -> Dict[str, Any]:
        """Options with the auth token masked, safe to print or render."""
        data = asdict(self)
        data["hass_auth_token"] = mask_secret(self.hass_auth_token)
        return data


def mask_secret(secret: Optional[str], visible: int = 4) -> str:
    """
    Mask a secret for display.

    >>> mask_secret("abcdefghijkl")
    '********ijkl'
    >>> mask_secret("abc")
    '***'
    """
    if not secret:
        return ""
    if len(secret) <= visible * 2:
        return "*" * len(secret)
    return "*" * (len(secret) - visible) + secret[-visible:]


def default_config_path() -> str:
    return os.path.join(os.path.expanduser("~"), DEFAULT_CONFIG_FILENAME)


def load_config_file(path: Optional[str], required: bool = False) -> Dict[str, Any]:
    """
    Read a YAML config file into a dict.

    Missing files are only an error when ``required`` (an explicit --config).
    """
    if not path:
        return {}
    if not os.path.exists(path):
        if required:
            raise ConfigError([f"config file not found: {path}"])
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError([f"could not read config file {path}: {e}"]) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError([f"config file {path} must contain a mapping"])
    return data


def _env_value(environ: Mapping[str, str], names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def load_options(
    flags: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    config_file: Optional[str] = None,
) -> ServerOptions:
    """
    Resolve and validate ServerOptions.

    Args:
        flags: Values given on the command line (None / "" means "not given")
        environ: Environment mapping (defaults to os.environ)
        config_file: Explicit YAML config path; otherwise the default path is tried

    Raises:
        ConfigError: listing every missing or invalid value
    """
    flags = flags or {}
    environ = os.environ if environ is None else environ

    explicit_file = config_file is not None
    path = config_file if explicit_file else default_config_path()
    file_values = load_config_file(path, required=explicit_file)
    used_file = path if file_values or explicit_file else None

    raw: Dict[str, Any] = {}
    for option, (flag, env_names, yaml_key) in OPTION_SOURCES.items():
        value = flags.get(option)
        if value is None or value == "":
            value = _env_value(environ, env_names)
        if value is None or value == "":
            value = file_values.get(yaml_key)
        if value is None or value == "":
            value = DEFAULTS[option]
        raw[option] = value

    problems: List[str] = []

    for option in REQUIRED:
        if not raw[option]:
            flag, env_names, _ = OPTION_SOURCES[option]
            problems.append(f"Missing required flag --{flag} ({env_names[0]})")

    try:
        raw["port"] = int(raw["port"])
        if raw["port"] < 1 or raw["port"] > 65535:
            problems.append(f"port must be between 1-65535, got: {raw['port']}")
    except (TypeError, ValueError):
        problems.append(f"error parsing server port {raw['port']!r}")

    try:
        raw["forward_timeout"] = float(raw["forward_timeout"])
        if raw["forward_timeout"] < 0:
            problems.append(f"forward_timeout cannot be negative: {raw['forward_timeout']}")
    except (TypeError, ValueError):
        problems.append(f"error parsing forward timeout {raw['forward_timeout']!r}")

    try:
        raw["loglevel"] = log_level_from_str(str(raw["loglevel"])).name
    except ValueError as e:
        problems.append(str(e))

    if problems:
        raise ConfigError(problems)

    return ServerOptions(
        address=str(raw["address"]),
        port=raw["port"],
        hass_url=str(raw["hass_url"]),
        hass_auth_token=str(raw["hass_auth_token"]),
        hass_webhook_id=str(raw["hass_webhook_id"]),
        forward_timeout=raw["forward_timeout"],
        loglevel=raw["loglevel"],
        output=str(raw["output"]),
        config_file=used_file,
    )
