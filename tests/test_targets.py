"""Tests for process target resolution and the log throttle."""

import logging
import re
import threading

import pytest

from pod_exporter.models import PidListTarget, RegexTarget, SingleTarget
from pod_exporter.targets import LogThrottle, ProcessTargetResolver


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestLogThrottle:
    """Tests for LogThrottle."""

    def test_first_call_emits(self):
        """Test the very first message is let through."""
        assert LogThrottle(clock=FakeClock()).should_emit()

    def test_suppressed_within_cooldown(self):
        """Test repeated calls inside the window are suppressed."""
        clock = FakeClock()
        throttle = LogThrottle(cooldown=300.0, clock=clock)
        assert throttle.should_emit()
        for step in range(1, 300):
            clock.now = float(step)
            assert not throttle.should_emit()

    def test_emits_again_after_cooldown(self):
        """Test the window reopens once the cooldown has elapsed."""
        clock = FakeClock()
        throttle = LogThrottle(cooldown=300.0, clock=clock)
        throttle.should_emit()
        clock.now = 300.0
        assert throttle.should_emit()
        clock.now = 450.0
        assert not throttle.should_emit()

    def test_default_cooldown_is_five_minutes(self):
        """Test the default cooldown."""
        assert LogThrottle().cooldown == 300.0

    def test_single_winner_under_concurrency(self):
        """Test only one of many concurrent callers emits."""
        throttle = LogThrottle(clock=FakeClock())
        barrier = threading.Barrier(16)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            emitted = throttle.should_emit()
            with lock:
                results.append(emitted)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1


class TestProcessTargetResolver:
    """Tests for ProcessTargetResolver."""

    def test_single(self, fake_proc):
        """Test a single PID resolves to itself."""
        assert ProcessTargetResolver(fake_proc.root).resolve(SingleTarget(12)) == [12]

    def test_pid_list_verbatim(self, fake_proc):
        """Test a PID list is returned as configured."""
        resolver = ProcessTargetResolver(fake_proc.root)
        assert resolver.resolve(PidListTarget((5, 3, 9))) == [5, 3, 9]

    def test_empty_pid_list(self, fake_proc):
        """Test an empty list resolves to nothing rather than failing."""
        assert ProcessTargetResolver(fake_proc.root).resolve(PidListTarget(())) == []

    def test_regex_matches_cmdline(self, fake_proc):
        """Test a candidate matches via its cmdline."""
        fake_proc.add_process(100, comm="worker", cmdline="nginx: worker")
        fake_proc.add_process(101, comm="bash", cmdline="/bin/bash")
        resolver = ProcessTargetResolver(fake_proc.root)
        assert resolver.resolve(RegexTarget(re.compile("nginx.*"))) == [100]

    def test_regex_falls_back_to_comm(self, fake_proc):
        """Test a candidate with empty cmdline matches via comm."""
        fake_proc.add_process(200, comm="nginx", cmdline="")
        resolver = ProcessTargetResolver(fake_proc.root)
        assert resolver.resolve(RegexTarget(re.compile("nginx.*"))) == [200]

    def test_regex_cmdline_nul_bytes_become_spaces(self, fake_proc):
        """Test arguments are joined with spaces before matching."""
        fake_proc.add_process(300, comm="python", cmdline="python -m app.server")
        resolver = ProcessTargetResolver(fake_proc.root)
        target = RegexTarget(re.compile(r"-m app\.server"))
        assert resolver.resolve(target) == [300]

    def test_regex_ignores_non_numeric_entries(self, fake_proc):
        """Test only numeric directory names are candidates."""
        (fake_proc.root / "self").mkdir()
        (fake_proc.root / "self" / "comm").write_text("nginx\n")
        fake_proc.add_process(400, comm="nginx")
        resolver = ProcessTargetResolver(fake_proc.root)
        assert resolver.resolve(RegexTarget(re.compile("nginx"))) == [400]

    def test_regex_skips_vanished_process(self, fake_proc):
        """Test a PID directory without files is skipped silently."""
        (fake_proc.root / "500").mkdir()
        fake_proc.add_process(501, comm="nginx")
        resolver = ProcessTargetResolver(fake_proc.root)
        assert resolver.resolve(RegexTarget(re.compile("nginx"))) == [501]

    def test_regex_no_match(self, fake_proc):
        """Test no candidate matching gives an empty set."""
        fake_proc.add_process(600, comm="bash", cmdline="bash")
        resolver = ProcessTargetResolver(fake_proc.root)
        assert resolver.resolve(RegexTarget(re.compile("nginx"))) == []

    def test_regex_summary_logged_once_per_window(self, fake_proc, caplog):
        """Test the match summary is throttled across many scans."""
        fake_proc.add_process(700, comm="nginx")
        clock = FakeClock()
        resolver = ProcessTargetResolver(fake_proc.root, LogThrottle(clock=clock))
        target = RegexTarget(re.compile("nginx"))

        with caplog.at_level(logging.INFO, logger="pod_exporter.targets"):
            for step in range(60):
                clock.now = step * 1.0
                resolver.resolve(target)
            summaries = [r for r in caplog.records if "matched processes" in r.getMessage()]
            assert len(summaries) == 1
            assert "matched=1" in summaries[0].getMessage()

            clock.now = 301.0
            resolver.resolve(target)
            summaries = [r for r in caplog.records if "matched processes" in r.getMessage()]
            assert len(summaries) == 2

    def test_unsupported_target(self, fake_proc):
        """Test an unknown target type is rejected."""
        with pytest.raises(TypeError):
            ProcessTargetResolver(fake_proc.root).resolve("nginx")
