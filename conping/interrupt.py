"""One-shot SIGINT/SIGTERM handler that flushes the summary before exiting."""

import os
import signal
import threading
from typing import Callable, Dict, Optional, Sequence

from conping.summary import Summary


EXIT_INTERRUPTED = 1
HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class InterruptHandler:
    """Print the current summary and terminate when the process is interrupted.

    The summary is read without waiting for in-flight probes, so it may miss
    attempts that complete after the signal arrives. Only the first signal is
    handled; the previous handlers are put back before the summary prints.
    """

    def __init__(
        self,
        summary: Summary,
        exit_fn: Callable[[int], None] = os._exit,
        signals: Sequence[int] = HANDLED_SIGNALS,
    ):
        self.summary = summary
        self.exit_fn = exit_fn
        self.signals = tuple(signals)
        self.fired = False
        self._previous: Dict[int, object] = {}
        self._fire_lock = threading.Lock()

    def install(self) -> "InterruptHandler":
        for signum in self.signals:
            self._previous[signum] = signal.signal(signum, self._handle)
        return self

    def uninstall(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def _handle(self, signum: int, frame: Optional[object]) -> None:
        with self._fire_lock:
            if self.fired:
                return
            self.fired = True
        self.uninstall()
        self.summary.write_summary()
        self.exit_fn(EXIT_INTERRUPTED)

    def __enter__(self) -> "InterruptHandler":
        return self.install()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.uninstall()
