"""Small text helpers shared by the resolver, prober and summary output."""

from datetime import datetime


TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

_UNITS = (
    (1.0, "s"),
    (1e-3, "ms"),
    (1e-6, "µs"),
)


def format_duration(seconds: float) -> str:
    """Render a duration the way ping tools usually do (``12.345ms``, ``1.2s``).

    Args:
        seconds: Duration in seconds (may be zero)

    Returns:
        Compact string with the largest unit that keeps the value >= 1
    """
    if seconds <= 0:
        return "0s"
    for scale, unit in _UNITS:
        if seconds >= scale:
            return f"{_trim(seconds / scale)}{unit}"
    return f"{round(seconds * 1e9)}ns"


def _trim(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def bracket_ipv6(address: str) -> str:
    """Wrap an IPv6 literal in brackets so it can be joined with a port."""
    if ":" in address and not address.startswith("["):
        return f"[{address}]"
    return address


def strip_brackets(address: str) -> str:
    return address[1:-1] if address.startswith("[") and address.endswith("]") else address


def join_host_port(host: str, port: int) -> str:
    return f"{bracket_ipv6(host)}:{port}"
