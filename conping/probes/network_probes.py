"""Network probes: host resolution and a single timed connection attempt."""

import ipaddress
import socket
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

import dns.exception
import dns.rdatatype
import dns.resolver
from rich.console import Console

from conping.errors import DialError, ResolutionError
from conping.formatting import bracket_ipv6, format_duration, join_host_port, strip_brackets
from conping.schemas import DnsEndpoint, PingConfig, ProbeOutcome, ProbeTarget, Transport


def resolve_host(
    hostname: str,
    timeout: float,
    dns_endpoint: Optional[DnsEndpoint] = None,
    family: int = socket.AF_UNSPEC,
    console: Optional[Console] = None,
) -> str:
    """Resolve a hostname to a single address.

    The first address returned by the lookup wins; there is no fallback to
    later entries. IPv6 results come back bracketed (``[2001:db8::1]``) so
    they can be joined with a port directly.

    Args:
        hostname: Host name or IP literal (required)
        timeout: Lookup deadline in seconds
        dns_endpoint: Send the query to this name server instead of the system resolver
        family: Restrict results to AF_INET or AF_INET6 (default: any)
        console: Where to report the DNS round trip when a custom server is used

    Returns:
        str: The chosen address

    Raises:
        ResolutionError: if the lookup fails or yields no addresses
    """
    start = time.perf_counter()
    literal = _ip_literal(hostname)
    if literal is not None:
        addresses = [literal]
    elif dns_endpoint is None:
        addresses = _system_lookup(hostname, timeout, family)
    else:
        addresses = _nameserver_lookup(hostname, timeout, dns_endpoint, family)

    if not addresses:
        raise ResolutionError(hostname, "no addresses found")

    address = bracket_ipv6(addresses[0])
    if dns_endpoint is not None and console is not None:
        elapsed = time.perf_counter() - start
        console.print(
            f"[DNS] [{dns_endpoint.label}] {hostname} --> {address} - {format_duration(elapsed)}",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
    return address


def resolve_target(
    target: ProbeTarget, config: PingConfig, console: Optional[Console] = None
) -> ProbeTarget:
    """Return a copy of ``target`` with ``resolved_address`` filled in."""
    transport = target.transport or config.transport
    address = resolve_host(
        target.host,
        timeout=config.timeout,
        dns_endpoint=config.dns,
        family=transport.family,
        console=console,
    )
    return target.model_copy(update={"resolved_address": address})


def _ip_literal(hostname: str) -> Optional[str]:
    try:
        return str(ipaddress.ip_address(strip_brackets(hostname)))
    except ValueError:
        return None


def _system_lookup(hostname: str, timeout: float, family: int) -> List[str]:
    # getaddrinfo has no timeout of its own. The lookup runs on a daemon
    # thread so an abandoned one never holds up interpreter exit.
    outcome: Dict[str, object] = {}

    def _lookup() -> None:
        try:
            outcome["infos"] = socket.getaddrinfo(
                hostname, None, family, socket.SOCK_STREAM
            )
        except OSError as e:
            outcome["error"] = e

    worker = threading.Thread(target=_lookup, name="conping-lookup", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise ResolutionError(hostname, "i/o timeout")

    error = outcome.get("error")
    if isinstance(error, socket.gaierror):
        raise ResolutionError(hostname, error.strerror or str(error)) from error
    if isinstance(error, OSError):
        raise ResolutionError(hostname, str(error)) from error
    infos = outcome["infos"]

    addresses: List[str] = []
    for info in infos:
        ip = info[4][0]
        if ip not in addresses:
            addresses.append(ip)
    return addresses


def _nameserver_lookup(
    hostname: str, timeout: float, endpoint: DnsEndpoint, family: int
) -> List[str]:
    resolver = dns.resolver.Resolver(configure=False)
    resolver.nameservers = [endpoint.address]
    resolver.port = endpoint.port
    resolver.timeout = timeout
    resolver.lifetime = timeout

    if family == socket.AF_INET:
        rdtypes = [dns.rdatatype.A]
    elif family == socket.AF_INET6:
        rdtypes = [dns.rdatatype.AAAA]
    else:
        rdtypes = [dns.rdatatype.A, dns.rdatatype.AAAA]

    for rdtype in rdtypes:
        try:
            answer = resolver.resolve(
                hostname,
                rdtype,
                tcp=endpoint.transport == "tcp",
                lifetime=timeout,
                search=False,
            )
        except dns.resolver.NoAnswer:
            continue
        except dns.resolver.NXDOMAIN as e:
            raise ResolutionError(hostname, "no such host") from e
        except dns.exception.Timeout as e:
            raise ResolutionError(hostname, "i/o timeout") from e
        except dns.exception.DNSException as e:
            raise ResolutionError(hostname, str(e) or type(e).__name__) from e

        addresses = [rdata.address for rdata in answer]
        if addresses:
            return addresses
    return []


def connect_probe(target: ProbeTarget, defaults: PingConfig) -> ProbeOutcome:
    """Make one timed connection attempt and close it straight away.

    Port, timeout and transport left unset on the target are taken from
    ``defaults`` at call time. Timing covers only the dial itself.

    Args:
        target: Resolved target (required)
        defaults: Run configuration supplying fallback values

    Returns:
        ProbeOutcome: local address on success, error text on failure
    """
    port = target.port if target.port > 0 else defaults.port
    timeout = target.timeout if target.timeout > 0 else defaults.timeout
    transport = target.transport or defaults.transport

    outcome = ProbeOutcome(host=target.host, port=port)
    if not target.resolved_address:
        outcome.error = "invalid host"
        return outcome

    outcome.remote_address = join_host_port(target.resolved_address, port)
    outcome.timestamp = datetime.now()

    start = time.perf_counter()
    try:
        sock = _dial(strip_brackets(target.resolved_address), port, transport, timeout)
    except DialError as e:
        outcome.duration_seconds = time.perf_counter() - start
        outcome.error = str(e)
        return outcome
    outcome.duration_seconds = time.perf_counter() - start

    with sock:
        outcome.local_address = _sockaddr_text(sock.getsockname())
    return outcome


def _dial(address: str, port: int, transport: Transport, timeout: float) -> socket.socket:
    remote = join_host_port(address, port)
    try:
        infos = socket.getaddrinfo(
            address, port, transport.family, transport.socket_type, 0, socket.AI_NUMERICHOST
        )
        family, socktype, proto, _, sockaddr = infos[0]
        sock = socket.socket(family, socktype, proto)
    except OSError as e:
        raise DialError(remote, e) from e

    sock.settimeout(timeout)
    try:
        # for datagram sockets this only fixes the peer; nothing is sent
        sock.connect(sockaddr)
    except OSError as e:
        sock.close()
        raise DialError(remote, e) from e
    return sock


def _sockaddr_text(sockaddr) -> str:
    return join_host_port(sockaddr[0], sockaddr[1])
