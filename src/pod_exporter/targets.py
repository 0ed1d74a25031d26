"""Resolution of the configured process target into live PIDs."""

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from pod_exporter.models import PidListTarget, ProcessTarget, RegexTarget, SingleTarget

logger = logging.getLogger(__name__)

REGEX_LOG_COOLDOWN = 300.0


class LogThrottle:
    """
    Lets a message through at most once per cooldown window.

    The last-emitted timestamp is updated under a lock, so concurrent callers
    agree on exactly one winner per window.
    """

    def __init__(
        self,
        cooldown: float = REGEX_LOG_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cooldown = cooldown
        self._clock = clock
        self._last: float | None = None
        self._lock = threading.Lock()

    @property
    def cooldown(self) -> float:
        return self._cooldown

    def should_emit(self) -> bool:
        now = self._clock()
        with self._lock:
            if self._last is not None and now - self._last < self._cooldown:
                return False
            self._last = now
            return True


class ProcessTargetResolver:
    """Turns a ProcessTarget into the PIDs to sample this cycle."""

    def __init__(self, proc_root: Path | str = "/proc", throttle: LogThrottle | None = None) -> None:
        self._root = Path(proc_root)
        self._throttle = throttle if throttle is not None else LogThrottle()

    def resolve(self, target: ProcessTarget) -> list[int]:
        if isinstance(target, SingleTarget):
            return [target.pid]
        if isinstance(target, PidListTarget):
            return list(target.pids)
        if isinstance(target, RegexTarget):
            return self.scan(target)
        raise TypeError(f"unsupported process target: {target!r}")

    def _read_optional(self, path: Path) -> str | None:
        """File content, "" if unreadable, None if the process is gone."""
        try:
            return path.read_text(errors="replace")
        except (FileNotFoundError, ProcessLookupError):
            return None
        except OSError:
            return ""

    def scan(self, target: RegexTarget) -> list[int]:
        """Match every numeric entry of the proc root against the pattern."""
        pattern = target.pattern
        matched: list[int] = []

        for entry in self._root.iterdir():
            if not (entry.name.isascii() and entry.name.isdigit()):
                continue
            pid = int(entry.name)

            cmdline = self._read_optional(entry / "cmdline")
            if cmdline is None:
                continue
            cmdline = cmdline.replace("\0", " ")
            if pattern.search(cmdline):
                matched.append(pid)
                continue

            # Kernel threads and some daemons have an empty cmdline.
            comm = self._read_optional(entry / "comm")
            if comm is None:
                continue
            if pattern.search(comm.strip()):
                matched.append(pid)

        if self._throttle.should_emit():
            logger.info(
                "TARGET_PID_REGEXP matched processes regex=%s matched=%d",
                pattern.pattern,
                len(matched),
            )
        return matched
