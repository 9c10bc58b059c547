"""Conping probes package - name resolution and connection timing."""

from .network_probes import (
    resolve_host,
    resolve_target,
    connect_probe,
)

__all__ = [
    "resolve_host",
    "resolve_target",
    "connect_probe",
]
