"""cgroup v2 CPU and memory accounting."""

import logging
from pathlib import Path

from pod_exporter.errors import MissingSource
from pod_exporter.models import UNLIMITED, CgroupCpu, CgroupMemory, CgroupSnapshot, Limit

logger = logging.getLogger(__name__)

USEC_PER_SECOND = 1_000_000

_CPU_STAT_SECONDS = {
    "usage_usec": "usage_s",
    "user_usec": "user_s",
    "system_usec": "system_s",
    "throttled_usec": "throttled_s",
}

_CPU_STAT_COUNTS = {
    "nr_periods": "nr_periods",
    "nr_throttled": "nr_throttled",
}

MEMORY_SCALARS = ("current", "peak", "max", "high", "low")


def parse_limit(text: str) -> Limit | None:
    """``max`` is unlimited, an integer is finite, anything else is None."""
    text = text.strip()
    if text == "max":
        return UNLIMITED
    try:
        return Limit.finite(int(text))
    except ValueError:
        return None


def parse_cpu_stat(content: str) -> dict[str, float | int]:
    """Fields for the keys present in cpu.stat; malformed lines are skipped."""
    fields: dict[str, float | int] = {}
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        key, raw = parts[0], parts[1]
        if key not in _CPU_STAT_SECONDS and key not in _CPU_STAT_COUNTS:
            continue
        try:
            value = int(raw)
        except ValueError:
            logger.debug("skipping malformed cpu.stat line: %r", line)
            continue
        if key in _CPU_STAT_SECONDS:
            fields[_CPU_STAT_SECONDS[key]] = value / USEC_PER_SECOND
        else:
            fields[_CPU_STAT_COUNTS[key]] = value
    return fields


def parse_cpu_max(content: str) -> Limit | None:
    """
    ``<quota|max> <period>`` to a core count.

    Returns None for a zero period or unparsable tokens.
    """
    parts = content.split()
    if not parts:
        return None
    if parts[0] == "max":
        return UNLIMITED
    if len(parts) < 2:
        return None
    try:
        quota = int(parts[0])
        period = int(parts[1])
    except ValueError:
        return None
    if period <= 0:
        return None
    return Limit.finite(quota / period)


def parse_memory_events(content: str) -> dict[str, int]:
    events: dict[str, int] = {}
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            events[parts[0]] = int(parts[1])
        except ValueError:
            logger.debug("skipping malformed memory.events line: %r", line)
    return events


class CgroupSampler:
    """Reads one cgroup v2 directory. Each file is optional on its own."""

    def __init__(self, root: Path | str = "/sys/fs/cgroup") -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _read(self, name: str) -> str | None:
        path = self._root / name
        try:
            return path.read_text(errors="replace")
        except FileNotFoundError:
            return None
        except OSError as exc:
            # e.g. EIO while the cgroup is being torn down; only this file is lost.
            logger.debug("could not read %s: %s", path, exc)
            return None

    def sample(self) -> CgroupSnapshot:
        if not self._root.is_dir():
            raise MissingSource(self._root)
        return CgroupSnapshot(cpu=self._sample_cpu(), memory=self._sample_memory())

    def _sample_cpu(self) -> CgroupCpu:
        fields: dict = {}

        stat = self._read("cpu.stat")
        if stat is not None:
            fields.update(parse_cpu_stat(stat))

        # cpu.max only exists below the root cgroup with the cpu controller enabled.
        cpu_max = self._read("cpu.max")
        if cpu_max is not None:
            fields["limit_cores"] = parse_cpu_max(cpu_max)

        return CgroupCpu(**fields)

    def _sample_memory(self) -> CgroupMemory:
        fields: dict = {}
        for name in MEMORY_SCALARS:
            content = self._read(f"memory.{name}")
            if content is not None:
                fields[name] = parse_limit(content)

        events = self._read("memory.events")
        if events is not None:
            fields["events"] = parse_memory_events(events)

        return CgroupMemory(**fields)
