"""Host-wide CPU and memory from /proc/stat and /proc/meminfo."""

import logging
from pathlib import Path

from pod_exporter.errors import MalformedData
from pod_exporter.logs import log_failure
from pod_exporter.models import HOST_CPU_MODES, HostSnapshot
from pod_exporter.process import clock_ticks

logger = logging.getLogger(__name__)

_MEMINFO_KEYS = {
    "MemTotal": "memory_total",
    "MemFree": "memory_free",
    "MemAvailable": "memory_available",
    "Cached": "memory_cached",
    "Buffers": "memory_buffers",
    "SwapTotal": "swap_total",
    "SwapFree": "swap_free",
}


def parse_cpu_line(content: str, ticks: int) -> dict[str, float]:
    """
    Seconds per mode from the aggregate ``cpu`` line of /proc/stat.

    Per-core ``cpuN`` lines are ignored. Trailing modes missing on older
    kernels, and unparsable tokens, count as 0.
    """
    for line in content.splitlines():
        if line.startswith("cpu "):
            tokens = line.split()[1:]
            break
    else:
        raise MalformedData("stat", "no aggregate 'cpu' line")

    seconds: dict[str, float] = {}
    for index, mode in enumerate(HOST_CPU_MODES):
        raw = 0.0
        if index < len(tokens):
            try:
                raw = float(tokens[index])
            except ValueError:
                raw = 0.0
        seconds[mode] = raw / ticks
    return seconds


def parse_meminfo(content: str) -> dict[str, int]:
    """Selected ``Key: value kB`` entries in bytes. Absent keys are 0."""
    values = dict.fromkeys(_MEMINFO_KEYS.values(), 0)
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        key = parts[0].rstrip(":")
        if key not in _MEMINFO_KEYS:
            continue
        try:
            values[_MEMINFO_KEYS[key]] = int(parts[1]) * 1024
        except ValueError:
            continue
    return values


class HostSampler:
    """
    Reads <root>/stat and <root>/meminfo independently.

    A file that cannot be read or parsed is logged and its fields are left
    unset, so the other file still updates.
    """

    def __init__(self, proc_root: Path | str = "/proc", ticks: int | None = None) -> None:
        self._root = Path(proc_root)
        self._ticks = ticks or clock_ticks()

    def _sample_cpu(self) -> dict[str, float] | None:
        path = self._root / "stat"
        try:
            return parse_cpu_line(path.read_text(errors="replace"), self._ticks)
        except (OSError, MalformedData) as exc:
            log_failure(logger, "reading host cpu times failed", exc, path=path)
            return None

    def _sample_memory(self) -> dict[str, int]:
        path = self._root / "meminfo"
        try:
            return parse_meminfo(path.read_text(errors="replace"))
        except OSError as exc:
            log_failure(logger, "reading host memory failed", exc, path=path)
            return {}

    def sample(self) -> HostSnapshot:
        return HostSnapshot(cpu_seconds=self._sample_cpu(), **self._sample_memory())
