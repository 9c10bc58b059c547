"""Pytest configuration and shared fixtures."""

import io
import socket
from datetime import datetime

import pytest
from rich.console import Console

from conping.schemas import PingConfig, ProbeOutcome, ProbeTarget


@pytest.fixture
def recording_console():
    """Console that writes plain text into an in-memory buffer."""
    return Console(file=io.StringIO(), width=200, color_system=None, emoji=False)


@pytest.fixture
def sample_config():
    """Interval-mode config with a small budget."""
    return PingConfig(host="example.com", port=80, interval=1.0, timeout=1.0, count=3)


@pytest.fixture
def resolved_target(sample_config):
    return ProbeTarget.from_config(sample_config).model_copy(
        update={"resolved_address": "93.184.216.34"}
    )


@pytest.fixture
def make_outcome():
    """Factory for ProbeOutcome instances with a fixed timestamp."""
    def _make(duration: float = 0.01, error: str = None, **overrides):
        fields = {
            "timestamp": datetime(2024, 1, 2, 3, 4, 5),
            "duration_seconds": duration,
            "host": "example.com",
            "port": 80,
            "local_address": "" if error else "10.0.0.2:50000",
            "remote_address": "93.184.216.34:80",
            "error": error,
        }
        fields.update(overrides)
        return ProbeOutcome(**fields)
    return _make


@pytest.fixture
def tcp_listener():
    """A listening TCP socket on localhost; yields its port."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(("127.0.0.1", 0))
    server.listen(128)
    try:
        yield server.getsockname()[1]
    finally:
        server.close()


@pytest.fixture
def closed_port():
    """A localhost port with nothing listening on it."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port
