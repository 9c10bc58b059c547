"""CLI entry point for conping.

Measures how long it takes to open a TCP connection (or set up a UDP
association) to a host, repeatedly, and prints per-attempt and summary
latency.
"""

import argparse
import sys
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from conping.config import build_config, load_defaults, pick_host_and_port, USAGE_HINT
from conping.errors import ConfigError
from conping.interrupt import InterruptHandler
from conping.ping_loop import ping_loop
from conping.summary import Summary

console = Console()

EXIT_CONFIG_ERROR = 127


def build_parser(defaults: dict) -> argparse.ArgumentParser:
    """Build the argument parser; ``defaults`` come from ``load_defaults()``."""
    parser = argparse.ArgumentParser(
        prog="conping",
        description="conping: measure connection latency to a host and port",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
        epilog="""
Examples:
  # Ten TCP connects to port 80, one per second
  conping example.com

  # Port 443, five attempts, 500ms apart
  conping -h example.com -p 443 -c 5 -i 0.5

  # Fire 20 attempts at once and resolve through 1.1.1.1 over TCP
  conping example.com 443 -i 0 -c 20 -dns 1.1.1.1:53 -dns-net tcp

  # Keep going until interrupted
  conping example.com -c 0
        """
    )

    parser.add_argument("--help", action="help", help="Show this help message and exit")
    parser.add_argument(
        "-h", dest="host", default="", metavar="HOST", help="Host to probe"
    )
    parser.add_argument(
        "-p",
        dest="port",
        type=int,
        default=defaults["port"],
        metavar="PORT",
        help=f"Destination port (default: {defaults['port']})",
    )
    parser.add_argument(
        "-n",
        dest="net",
        default=defaults["net"],
        metavar="NET",
        help=f"Network: tcp, tcp4, tcp6, udp, udp4, udp6 (default: {defaults['net']})",
    )
    parser.add_argument(
        "-i",
        dest="interval",
        type=float,
        default=defaults["interval"],
        metavar="SECONDS",
        help=f"Pause between attempts; 0 probes concurrently (default: {defaults['interval']})",
    )
    parser.add_argument(
        "-w",
        dest="timeout",
        type=float,
        default=defaults["timeout"],
        metavar="SECONDS",
        help=f"Connect and lookup timeout (default: {defaults['timeout']})",
    )
    parser.add_argument(
        "-c",
        dest="count",
        type=int,
        default=defaults["count"],
        metavar="N",
        help=f"Number of attempts; 0 or less runs until interrupted (default: {defaults['count']})",
    )
    parser.add_argument(
        "-dns",
        dest="dns",
        default=defaults["dns"],
        metavar="ADDR",
        help="Resolve the host through this DNS server (IP or IP:PORT)",
    )
    parser.add_argument(
        "-dns-net",
        dest="dns_net",
        default=defaults["dns_net"],
        metavar="NET",
        help=f"Transport for the DNS server: udp or tcp (default: {defaults['dns_net']})",
    )
    parser.add_argument(
        "positionals",
        nargs="*",
        metavar="TARGET",
        help="HOST or HOST PORT when -h is not given",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    load_dotenv()

    try:
        defaults = load_defaults()
    except ConfigError as e:
        console.print(f"[red]ERROR: {escape(str(e))}[/red]")
        return EXIT_CONFIG_ERROR

    parser = build_parser(defaults)
    args = parser.parse_args(argv)

    host, port = pick_host_and_port(args.host, args.port, args.positionals)
    if not host or not port:
        console.print(escape(USAGE_HINT), highlight=False)
        return EXIT_CONFIG_ERROR

    try:
        config = build_config(
            host=host,
            port=port,
            net=args.net,
            interval=args.interval,
            timeout=args.timeout,
            count=args.count,
            dns=args.dns,
            dns_net=args.dns_net,
            max_workers=defaults["max_workers"],
        )
    except ConfigError as e:
        console.print(f"[red]ERROR: {escape(str(e))}[/red]")
        return EXIT_CONFIG_ERROR

    return run_ping(config)


def run_ping(config, handler_factory=InterruptHandler) -> int:
    """Run a probing session with the interrupt handler installed."""
    summary = Summary(config, console=console)
    with handler_factory(summary):
        return ping_loop(config, summary, console=console)


if __name__ == "__main__":
    sys.exit(main())
