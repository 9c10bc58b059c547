"""Running latency statistics shared by every probe of a run."""

import threading
import time
from datetime import datetime
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from conping.formatting import format_duration, format_timestamp, join_host_port
from conping.probes import connect_probe
from conping.schemas import AggregateStats, PingConfig, ProbeOutcome, ProbeTarget


class Summary:
    """Thread-safe aggregate of probe outcomes.

    All counters are updated together under one lock, and the per-attempt
    line is printed while the lock is held, so printed lines and counters
    always agree. The lock is never held while dialing. It is reentrant
    because the interrupt handler may render from the main thread while
    that thread is inside record_outcome.
    """

    def __init__(
        self,
        config: PingConfig,
        console: Optional[Console] = None,
        prober: Callable[[ProbeTarget, PingConfig], ProbeOutcome] = connect_probe,
    ):
        self.config = config
        self.console = console or Console()
        self.prober = prober
        self.transport_label = config.transport.value
        self.started_at = datetime.now()
        self._started = time.perf_counter()
        self._lock = threading.RLock()

        self.count = 0
        self.error_count = 0
        self.min_duration: Optional[float] = None
        self.max_duration = 0.0
        self.sum_duration = 0.0

    def result(self, target: ProbeTarget) -> ProbeOutcome:
        """Probe ``target`` once and record the outcome."""
        outcome = self.prober(target, self.config)
        self.record_outcome(outcome)
        return outcome

    def record_outcome(self, outcome: ProbeOutcome) -> None:
        with self._lock:
            self.count += 1
            stamp = format_timestamp(outcome.timestamp)
            if outcome.error is None:
                duration = outcome.duration_seconds
                if self.min_duration is None or duration < self.min_duration:
                    self.min_duration = duration
                if duration > self.max_duration:
                    self.max_duration = duration
                self.sum_duration += duration
                self.console.print(
                    escape(
                        f"[{stamp}] {outcome.local_address} --> "
                        f"{outcome.remote_address} - {format_duration(duration)}"
                    ),
                    highlight=False,
                    soft_wrap=True,
                )
            else:
                self.error_count += 1
                self.console.print(
                    "[red]"
                    + escape(
                        f"[{stamp}] {join_host_port(outcome.host, outcome.port)}"
                        f" - {outcome.error}"
                    )
                    + "[/red]",
                    highlight=False,
                    soft_wrap=True,
                )

    @property
    def stats(self) -> AggregateStats:
        """Consistent snapshot of the counters."""
        with self._lock:
            return AggregateStats(
                transport_label=self.transport_label,
                count=self.count,
                error_count=self.error_count,
                min_duration=self.min_duration,
                max_duration=self.max_duration,
                sum_duration=self.sum_duration,
                started_at=self.started_at,
            )

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self._started

    def summary_line(self) -> str:
        stats = self.stats
        return (
            f"[{stats.transport_label.upper()}] "
            f"Max: {format_duration(stats.max_duration)} "
            f"Min: {format_duration(stats.min_duration or 0.0)} "
            f"Avg: {format_duration(stats.avg_duration)} "
            f"Total: {stats.count} Error: {stats.error_count} "
            f"- {format_duration(self.elapsed)}"
        )

    def render_summary(self) -> str:
        """Print the summary line framed by blank lines and return it.

        Safe to call repeatedly; each call reflects the current counters.
        """
        line = self.summary_line()
        self.console.print()
        self.console.print(escape(line), highlight=False, soft_wrap=True)
        self.console.print()
        return line

    def write_summary(self) -> str:
        """Write the summary straight to the console's file and flush it.

        Used on the way out of the process: rich buffers output until the
        outermost ``print`` returns, and a signal may land inside one.
        """
        line = self.summary_line()
        stream = self.console.file
        stream.write(f"\n{line}\n\n")
        stream.flush()
        return line
