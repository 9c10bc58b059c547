"""Run configuration: built-in defaults, environment overrides, CLI values.

Precedence is CLI flag > environment (``CONPING_*``, optionally from a
``.env`` file loaded by the CLI) > built-in default. The result is a frozen
``PingConfig`` that is passed explicitly to every component.
"""

import os
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from conping.errors import ConfigError
from conping.schemas import DnsEndpoint, PingConfig


DEFAULT_PORT = 80
DEFAULT_NET = "tcp"
DEFAULT_INTERVAL = 1.0
DEFAULT_TIMEOUT = 1.0
DEFAULT_COUNT = 10
DEFAULT_DNS_NET = "udp"
DEFAULT_MAX_WORKERS = 64

USAGE_HINT = "Use '-h' to set host, '-p' to set port."

# environment variable -> (setting name, converter)
ENV_OVERRIDES = {
    "CONPING_PORT": ("port", int),
    "CONPING_NET": ("net", str),
    "CONPING_INTERVAL": ("interval", float),
    "CONPING_TIMEOUT": ("timeout", float),
    "CONPING_COUNT": ("count", int),
    "CONPING_DNS": ("dns", str),
    "CONPING_DNS_NET": ("dns_net", str),
    "CONPING_MAX_WORKERS": ("max_workers", int),
}


def builtin_defaults() -> Dict[str, Any]:
    return {
        "port": DEFAULT_PORT,
        "net": DEFAULT_NET,
        "interval": DEFAULT_INTERVAL,
        "timeout": DEFAULT_TIMEOUT,
        "count": DEFAULT_COUNT,
        "dns": "",
        "dns_net": DEFAULT_DNS_NET,
        "max_workers": DEFAULT_MAX_WORKERS,
    }


def load_defaults(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Return the built-in defaults with any ``CONPING_*`` overrides applied.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        dict keyed by setting name

    Raises:
        ConfigError: if an override cannot be converted
    """
    environ = os.environ if environ is None else environ
    defaults = builtin_defaults()
    for var, (name, convert) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            defaults[name] = convert(raw)
        except ValueError as e:
            raise ConfigError(f"invalid value for {var}: {raw!r}") from e
    return defaults


def pick_host_and_port(
    host: str, port: int, positionals: List[str]
) -> Tuple[str, int]:
    """Fill in host (and port) from bare arguments when ``-h`` was not given.

    One bare argument is the host, two are host and port. A non-numeric
    port clears the host so the caller reports a usage error.
    """
    if host:
        return host, port
    if len(positionals) == 1:
        return positionals[0], port
    if len(positionals) == 2:
        try:
            return positionals[0], int(positionals[1])
        except ValueError:
            return "", port
    return "", port


def build_config(
    host: str,
    port: int = DEFAULT_PORT,
    net: str = DEFAULT_NET,
    interval: float = DEFAULT_INTERVAL,
    timeout: float = DEFAULT_TIMEOUT,
    count: int = DEFAULT_COUNT,
    dns: str = "",
    dns_net: str = DEFAULT_DNS_NET,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> PingConfig:
    """Validate raw settings into a ``PingConfig``.

    Raises:
        ConfigError: on a missing host, port 0, unknown transport or bad DNS address
    """
    if not host or not port:
        raise ConfigError(USAGE_HINT)

    endpoint = None
    if dns and dns_net:
        try:
            endpoint = DnsEndpoint.parse(dns, transport=dns_net)
        except ValueError as e:
            raise ConfigError(f"invalid DNS server {dns!r}: {_first_error(e)}") from e

    try:
        return PingConfig(
            host=host,
            port=port,
            transport=net,
            interval=interval,
            timeout=timeout,
            count=count,
            dns=endpoint,
            max_workers=max_workers,
        )
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {_first_error(e)}") from e


def _first_error(error: ValueError) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        return f"{loc}: {first['msg']}" if loc else first["msg"]
    return str(error)
