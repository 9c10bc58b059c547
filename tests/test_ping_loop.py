"""Tests for the probing loop in interval and concurrent mode."""

import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conping import ping_loop as ping_loop_module
from conping.errors import ResolutionError
from conping.ping_loop import attempt_budget, pending_limit, ping_loop, run_concurrent, run_interval
from conping.schemas import PingConfig
from conping.summary import Summary


class CountingProber:
    """Prober double that counts calls and can simulate slow dials."""

    def __init__(self, make_outcome, delay: float = 0.0, fail_every: int = 0):
        self.make_outcome = make_outcome
        self.delay = delay
        self.fail_every = fail_every
        self.calls = 0
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, target, defaults):
        with self._lock:
            self.calls += 1
            call = self.calls
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self._in_flight -= 1
        if self.fail_every and call % self.fail_every == 0:
            return self.make_outcome(error="timed out")
        return self.make_outcome(duration=0.001 * call)


def fake_resolver(target, config, console=None):
    return target.model_copy(update={"resolved_address": "93.184.216.34"})


def failing_resolver(target, config, console=None):
    raise ResolutionError(target.host, "no such host")


def summary_lines(console):
    return [line for line in console.file.getvalue().splitlines() if "Total:" in line]


class TestAttemptBudget:
    """Test the attempt-count convention."""

    def test_positive_count_is_exact(self):
        assert list(attempt_budget(3)) == [1, 2, 3]

    @pytest.mark.parametrize("count", [0, -1])
    def test_zero_or_negative_is_unbounded(self, count):
        assert list(itertools.islice(attempt_budget(count), 500)) == list(range(1, 501))


class TestIntervalMode:
    """Test serialized probing with a pause between attempts."""

    def test_runs_exact_count_without_sleep(self, make_outcome, recording_console, resolved_target):
        """count=3 with no pause makes exactly three attempts."""
        config = PingConfig(host="example.com", interval=0, count=3)
        prober = CountingProber(make_outcome)
        summary = Summary(config, console=recording_console, prober=prober)

        attempts = run_interval(resolved_target, config, summary, sleep=lambda s: None)

        assert attempts == 3
        assert prober.calls == 3
        assert summary.stats.count == 3

    def test_sleeps_between_attempts_only(self, make_outcome, recording_console, resolved_target):
        """No pause follows the final budgeted attempt."""
        config = PingConfig(host="example.com", interval=0.5, count=3)
        summary = Summary(config, console=recording_console, prober=CountingProber(make_outcome))
        pauses = []

        run_interval(resolved_target, config, summary, sleep=pauses.append)

        assert pauses == [0.5, 0.5]

    def test_attempts_never_overlap(self, make_outcome, recording_console, resolved_target):
        """Interval mode waits for each dial before starting the next."""
        config = PingConfig(host="example.com", interval=0.01, count=4)
        prober = CountingProber(make_outcome, delay=0.01)
        summary = Summary(config, console=recording_console, prober=prober)

        run_interval(resolved_target, config, summary, sleep=lambda s: None)

        assert prober.max_in_flight == 1

    def test_unbounded_runs_until_stopped(self, make_outcome, recording_console, resolved_target):
        """count=0 keeps probing until something outside stops the loop."""
        class Stop(Exception):
            pass

        config = PingConfig(host="example.com", interval=1, count=0)
        prober = CountingProber(make_outcome)
        summary = Summary(config, console=recording_console, prober=prober)

        def sleep(seconds):
            if prober.calls >= 7:
                raise Stop()

        with pytest.raises(Stop):
            run_interval(resolved_target, config, summary, sleep=sleep)
        assert summary.stats.count == 7

    def test_ping_loop_renders_one_summary(self, make_outcome, recording_console):
        """A full interval run ends with exactly one summary line."""
        config = PingConfig(host="example.com", interval=0.5, count=3)
        summary = Summary(config, console=recording_console, prober=CountingProber(make_outcome, fail_every=3))

        status = ping_loop(config, summary, resolver=fake_resolver, sleep=lambda s: None)

        assert status == 0
        lines = summary_lines(recording_console)
        assert len(lines) == 1
        assert "Total: 3 Error: 1" in lines[0]


class TestConcurrentMode:
    """Test fire-and-forget probing."""

    def test_all_dispatched_probes_are_recorded(self, make_outcome, recording_console, resolved_target):
        """count=5 launches five probes and the summary sees all five."""
        config = PingConfig(host="example.com", interval=0, count=5)
        prober = CountingProber(make_outcome, delay=0.05)
        summary = Summary(config, console=recording_console, prober=prober)

        dispatched = run_concurrent(resolved_target, config, summary)

        assert dispatched == 5
        assert prober.calls == 5
        assert summary.stats.count == 5

    def test_probes_overlap(self, make_outcome, recording_console, resolved_target):
        """Attempts do not wait for earlier ones to finish."""
        config = PingConfig(host="example.com", interval=0, count=8)
        prober = CountingProber(make_outcome, delay=0.1)
        summary = Summary(config, console=recording_console, prober=prober)

        run_concurrent(resolved_target, config, summary)

        assert prober.max_in_flight > 1

    def test_no_lost_updates_under_load(self, make_outcome, recording_console):
        """Many parallel probes leave the counters consistent."""
        config = PingConfig(host="example.com", interval=0, count=200, max_workers=32)
        prober = CountingProber(make_outcome, delay=0.001, fail_every=4)
        summary = Summary(config, console=recording_console, prober=prober)

        status = ping_loop(config, summary, resolver=fake_resolver)

        assert status == 0
        stats = summary.stats
        assert stats.count == 200
        assert stats.error_count == 50
        assert stats.success_count == 150
        lines = summary_lines(recording_console)
        assert len(lines) == 1
        assert "Total: 200 Error: 50" in lines[0]

    def test_interval_zero_selects_concurrent_mode(self, make_outcome, recording_console):
        """ping_loop never sleeps when the interval is zero."""
        config = PingConfig(host="example.com", interval=0, count=3)
        summary = Summary(config, console=recording_console, prober=CountingProber(make_outcome))

        def no_sleep(seconds):
            raise AssertionError("concurrent mode must not sleep")

        assert ping_loop(config, summary, resolver=fake_resolver, sleep=no_sleep) == 0
        assert summary.stats.count == 3


class TestResolutionFailure:
    """Test the fatal path before any probing."""

    def test_no_probes_and_no_summary(self, make_outcome, recording_console):
        """A failed lookup stops the run before the first attempt."""
        config = PingConfig(host="nope.invalid", interval=0, count=5)
        prober = CountingProber(make_outcome)
        summary = Summary(config, console=recording_console, prober=prober)

        status = ping_loop(config, summary, resolver=failing_resolver)

        assert status == 1
        assert prober.calls == 0
        assert summary_lines(recording_console) == []
        assert "lookup nope.invalid: no such host" in recording_console.file.getvalue()

    def test_real_resolver_on_ip_literal(self, tcp_listener, recording_console):
        """End to end against localhost with the default resolver and prober."""
        config = PingConfig(host="127.0.0.1", port=tcp_listener, interval=0, count=3, timeout=2.0)
        summary = Summary(config, console=recording_console)

        assert ping_loop(config, summary) == 0
        stats = summary.stats
        assert stats.count == 3
        assert stats.error_count == 0
        assert stats.min_duration is not None


class TestConcurrentBackpressure:
    """Test that concurrent dispatch keeps a bounded number of pending attempts."""

    def test_dispatch_pauses_at_pending_limit(self, make_outcome, recording_console, resolved_target, monkeypatch):
        """With every worker stuck, no more than the limit gets queued."""
        submitted = []

        class RecordingPool(ThreadPoolExecutor):
            def submit(self, fn, *args, **kwargs):
                submitted.append(fn)
                return super().submit(fn, *args, **kwargs)

        monkeypatch.setattr(ping_loop_module, "ThreadPoolExecutor", RecordingPool)
        release = threading.Event()

        def stuck_prober(target, defaults):
            release.wait(5)
            return make_outcome(duration=0.001)

        config = PingConfig(host="example.com", interval=0, count=50, max_workers=2)
        summary = Summary(config, console=recording_console, prober=stuck_prober)
        runner = threading.Thread(target=run_concurrent, args=(resolved_target, config, summary))
        runner.start()
        try:
            time.sleep(0.2)
            assert len(submitted) == pending_limit(config) == 4
        finally:
            release.set()
            runner.join(10)

        assert not runner.is_alive()
        assert len(submitted) == 50
        assert summary.stats.count == 50

    def test_unexpected_errors_are_reported(self, make_outcome, recording_console, resolved_target):
        """An exception inside an attempt is printed, not silently dropped."""
        calls = []

        def flaky_prober(target, defaults):
            calls.append(1)
            if len(calls) == 2:
                raise RuntimeError("socket table exhausted")
            return make_outcome(duration=0.001)

        config = PingConfig(host="example.com", interval=0, count=4)
        summary = Summary(config, console=recording_console, prober=flaky_prober)

        assert run_concurrent(resolved_target, config, summary) == 4

        output = recording_console.file.getvalue()
        assert "ERROR: attempt failed unexpectedly: socket table exhausted" in output
        assert summary.stats.count == 3
