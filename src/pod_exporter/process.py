"""Per-PID sampling from /proc and aggregation over a target set."""

import logging
import os
import time
from pathlib import Path

import psutil

from pod_exporter.models import SUMMED_FIELDS, AggregatedSample, ProcSample

logger = logging.getLogger(__name__)

DEFAULT_CLOCK_TICKS = 100

_IO_KEYS = {
    "rchar:": "io_rchar",
    "wchar:": "io_wchar",
    "syscr:": "io_syscr",
    "syscw:": "io_syscw",
    "read_bytes:": "io_read_bytes",
    "write_bytes:": "io_write_bytes",
    "cancelled_write_bytes:": "io_cancelled_write_bytes",
}

# Errors psutil lets through for a file it found but could not parse.
_MALFORMED = (OSError, ValueError, IndexError, RuntimeError)


def clock_ticks() -> int:
    """Kernel clock ticks per second, falling back to 100."""
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError):
        return DEFAULT_CLOCK_TICKS
    return ticks if ticks > 0 else DEFAULT_CLOCK_TICKS


def _parse_int(token: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        return None


class ProcSampler:
    """
    Samples per-process accounting with psutil, pointed at a proc root.

    psutil supplies CPU times, start time and rss/vms. VmSwap and the
    /proc/<pid>/io counters (psutil has no cancelled_write_bytes) are read
    from the files directly. A PID that exits while being sampled raises
    psutil.NoSuchProcess, which ``collect`` treats as "exited, not an error".
    """

    def __init__(self, proc_root: Path | str = "/proc") -> None:
        self._root = Path(proc_root)

    @property
    def proc_root(self) -> Path:
        return self._root

    def _use_root(self) -> None:
        # psutil takes its proc root from a module global.
        psutil.PROCFS_PATH = str(self._root)

    def _field(self, pid: int, what: str, read):
        try:
            return read()
        except _MALFORMED as exc:
            logger.debug("could not read %s of pid %d: %s", what, pid, exc)
            return None

    def _read_text(self, pid: int, name: str) -> str:
        # comm is embedded verbatim and need not be valid UTF-8.
        try:
            return (self._root / str(pid) / name).read_text(errors="replace")
        except OSError as exc:
            logger.debug("could not read %s of pid %d: %s", name, pid, exc)
            return ""

    def sample(self, pid: int) -> ProcSample:
        """Build one ProcSample. Raises psutil.NoSuchProcess if the PID is gone."""
        self._use_root()
        values: dict[str, float | int | None] = {}

        try:
            proc = psutil.Process(pid)
        except (ValueError, IndexError) as exc:
            # stat could not be parsed: CPU, start time and rss/vms stay unset.
            logger.debug("malformed stat for pid %d: %s", pid, exc)
            proc = None

        if proc is not None:
            with proc.oneshot():
                times = self._field(pid, "cpu times", proc.cpu_times)
                memory = self._field(pid, "memory info", proc.memory_info)
                # Needs btime in <root>/stat; unknown boot time leaves it unset.
                start = self._field(pid, "create time", proc.create_time)
            if times is not None:
                values["cpu_user_s"] = times.user
                values["cpu_system_s"] = times.system
            if memory is not None:
                values["mem_rss_bytes"] = memory.rss
                values["mem_vms_bytes"] = memory.vms
            if start is not None:
                values["start_time_s"] = start

        for line in self._read_text(pid, "status").splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "VmSwap:":
                kb = _parse_int(parts[1])
                if kb is not None:
                    values["mem_swap_bytes"] = kb * 1024

        # Needs ptrace access and CONFIG_TASK_IO_ACCOUNTING; all zero otherwise.
        for line in self._read_text(pid, "io").splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] in _IO_KEYS:
                value = _parse_int(parts[1])
                if value is not None:
                    values[_IO_KEYS[parts[0]]] = value

        return ProcSample(**values)

    def collect(self, pids) -> list[ProcSample]:
        """Sample every PID, skipping the ones that exited in the meantime."""
        samples: list[ProcSample] = []
        for pid in pids:
            try:
                samples.append(self.sample(pid))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as exc:
                logger.debug("skipping pid %d: %s", pid, exc)
                continue
        return samples


def aggregate(samples: list[ProcSample], now: float | None = None) -> AggregatedSample:
    """
    Fold per-PID samples into one.

    Counters are summed; the start time is the oldest member's, and uptime is
    measured from it. No samples gives AggregatedSample.empty().
    """
    if not samples:
        return AggregatedSample.empty()

    totals = {name: sum(getattr(s, name) for s in samples) for name in SUMMED_FIELDS}

    starts = [s.start_time_s for s in samples if s.start_time_s is not None]
    if not starts:
        return AggregatedSample(members=len(samples), **totals)

    oldest = min(starts)
    if now is None:
        now = time.time()
    return AggregatedSample(
        members=len(samples),
        start_time_s=oldest,
        uptime_s=now - oldest,
        has_start_time=True,
        **totals,
    )
