from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional
import ipaddress
import socket

from pydantic import BaseModel, Field, ConfigDict, field_validator, computed_field


class Transport(str, Enum):
    tcp = "tcp"
    tcp4 = "tcp4"
    tcp6 = "tcp6"
    udp = "udp"
    udp4 = "udp4"
    udp6 = "udp6"

    @property
    def is_stream(self) -> bool:
        return self.value.startswith("tcp")

    @property
    def socket_type(self) -> int:
        return socket.SOCK_STREAM if self.is_stream else socket.SOCK_DGRAM

    @property
    def family(self) -> int:
        if self.value.endswith("4"):
            return socket.AF_INET
        if self.value.endswith("6"):
            return socket.AF_INET6
        return socket.AF_UNSPEC


# ============================================================================
# Configuration Models
# ============================================================================

class DnsEndpoint(BaseModel):
    """Custom name server that all lookups are sent to."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = Field(..., description="IP address of the name server.")
    port: int = Field(53, ge=1, le=65535, description="Name server port.")
    transport: Literal["udp", "tcp"] = Field("udp", description="Transport used for DNS queries.")

    @field_validator("address")
    @classmethod
    def _must_be_ip(cls, value: str) -> str:
        value = value.strip("[]")
        ipaddress.ip_address(value)
        return value

    @field_validator("transport", mode="before")
    @classmethod
    def _lower_transport(cls, value):
        return value.lower() if isinstance(value, str) else value

    @classmethod
    def parse(cls, text: str, transport: str = "udp") -> "DnsEndpoint":
        """Parse ``IP``, ``IP:PORT``, ``[IPv6]:PORT`` or a bare IPv6 literal.

        Raises:
            ValueError: if the text is not an address with an optional port.
        """
        text = text.strip()
        if text.startswith("["):
            host, sep, port = text[1:].partition("]")
            if sep and port.startswith(":"):
                return cls(address=host, port=int(port[1:]), transport=transport)
            if sep and not port:
                return cls(address=host, transport=transport)
            raise ValueError(f"malformed DNS address: {text}")
        if text.count(":") == 1:
            host, _, port = text.partition(":")
            return cls(address=host, port=int(port), transport=transport)
        return cls(address=text, transport=transport)

    @property
    def label(self) -> str:
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


class PingConfig(BaseModel):
    """Immutable run configuration, built once at startup."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = Field(..., min_length=1, description="Host name or IP literal to probe.")
    port: int = Field(80, ge=1, le=65535, description="Destination port.")
    transport: Transport = Field(Transport.tcp, description="Network used for connection attempts.")
    interval: float = Field(1.0, description="Seconds between attempts; <= 0 enables concurrent mode.")
    timeout: float = Field(1.0, gt=0, description="Dial and lookup timeout in seconds.")
    count: int = Field(10, description="Number of attempts; <= 0 means unbounded.")
    dns: Optional[DnsEndpoint] = Field(None, description="Custom name server, if any.")
    max_workers: int = Field(64, ge=1, description="Thread pool size in concurrent mode.")

    @field_validator("transport", mode="before")
    @classmethod
    def _lower_transport(cls, value):
        return value.lower() if isinstance(value, str) else value

    @property
    def concurrent(self) -> bool:
        return self.interval <= 0

    @property
    def unbounded(self) -> bool:
        return self.count <= 0


# ============================================================================
# Probe Models
# ============================================================================

class ProbeTarget(BaseModel):
    """What a single probe dials.

    Zero/None fields fall back to the run defaults when the probe runs.
    ``resolved_address`` stays empty until the resolver fills it in.
    """
    model_config = ConfigDict(frozen=True)

    host: str
    resolved_address: str = ""
    port: int = 0
    transport: Optional[Transport] = None
    timeout: float = 0

    @classmethod
    def from_config(cls, config: PingConfig) -> "ProbeTarget":
        return cls(
            host=config.host,
            port=config.port,
            transport=config.transport,
            timeout=config.timeout,
        )


class ProbeOutcome(BaseModel):
    """Result of one connection attempt."""

    timestamp: datetime = Field(default_factory=datetime.now)
    duration_seconds: float = 0.0
    host: str = ""
    port: int = 0
    local_address: str = ""
    remote_address: str = ""
    error: Optional[str] = None

    @computed_field
    @property
    def ok(self) -> bool:
        return self.error is None


class AggregateStats(BaseModel):
    """Point-in-time copy of the running statistics."""
    model_config = ConfigDict(frozen=True)

    transport_label: str
    count: int = 0
    error_count: int = 0
    min_duration: Optional[float] = None
    max_duration: float = 0.0
    sum_duration: float = 0.0
    started_at: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def success_count(self) -> int:
        return self.count - self.error_count

    @computed_field
    @property
    def avg_duration(self) -> float:
        if self.success_count > 0:
            return self.sum_duration / self.success_count
        return 0.0
