"""Drives a probing run: resolve once, then probe on an interval or concurrently."""

import itertools
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterator, Optional

from rich.console import Console
from rich.markup import escape

from conping.errors import ResolutionError
from conping.probes import resolve_target
from conping.schemas import PingConfig, ProbeTarget
from conping.summary import Summary


EXIT_OK = 0
EXIT_RESOLUTION_FAILED = 1


def attempt_budget(count: int) -> Iterator[int]:
    """Yield attempt numbers: exactly ``count`` of them, or forever if ``count <= 0``."""
    if count <= 0:
        return itertools.count(1)
    return iter(range(1, count + 1))


def run_interval(
    target: ProbeTarget,
    config: PingConfig,
    summary: Summary,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Probe one attempt at a time, sleeping ``config.interval`` in between.

    Returns:
        int: Number of attempts made
    """
    attempts = 0
    for attempt in attempt_budget(config.count):
        summary.result(target)
        attempts = attempt
        if config.unbounded or attempt < config.count:
            sleep(max(config.interval, 0))
    return attempts


def pending_limit(config: PingConfig) -> int:
    """Most attempts allowed to be queued or running at once in concurrent mode."""
    return config.max_workers * 2


def run_concurrent(target: ProbeTarget, config: PingConfig, summary: Summary) -> int:
    """Dispatch attempts without waiting for earlier ones to finish.

    Dispatch only pauses once ``pending_limit(config)`` attempts are queued
    or running, which keeps an unbounded run from piling up futures.
    Leaving the executor block joins all submitted probes, so the summary
    rendered afterwards covers every attempt.

    Returns:
        int: Number of attempts dispatched
    """
    slots = threading.BoundedSemaphore(pending_limit(config))

    def _finished(future: Future) -> None:
        slots.release()
        error = future.exception()
        if error is not None:
            summary.console.print(
                f"[red]ERROR: attempt failed unexpectedly: {escape(str(error) or type(error).__name__)}[/red]",
                highlight=False,
                soft_wrap=True,
            )

    attempts = 0
    with ThreadPoolExecutor(
        max_workers=config.max_workers, thread_name_prefix="conping-probe"
    ) as pool:
        for attempt in attempt_budget(config.count):
            slots.acquire()
            pool.submit(summary.result, target).add_done_callback(_finished)
            attempts = attempt
    return attempts


def ping_loop(
    config: PingConfig,
    summary: Summary,
    console: Optional[Console] = None,
    resolver: Callable[..., ProbeTarget] = resolve_target,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run a full probing session.

    Args:
        config: Run configuration
        summary: Shared aggregate that every probe reports into
        console: Output console (defaults to the summary's console)
        resolver: Callable turning an unresolved target into a resolved one
        sleep: Pause function used between attempts in interval mode

    Returns:
        int: Process exit status (0 on completion, 1 if resolution failed)
    """
    console = console or summary.console
    target = ProbeTarget.from_config(config)

    try:
        target = resolver(target, config, console)
    except ResolutionError as e:
        console.print(f"[red]{escape(str(e))}[/red]", highlight=False, soft_wrap=True)
        return EXIT_RESOLUTION_FAILED

    if config.concurrent:
        run_concurrent(target, config, summary)
    else:
        run_interval(target, config, summary, sleep=sleep)

    summary.render_summary()
    return EXIT_OK
