"""Data models for pod_exporter."""

import math
import re
from dataclasses import dataclass, field

HOST_CPU_MODES = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)

TCP_STATES = (
    "ESTABLISHED",
    "SYN_SENT",
    "SYN_RECV",
    "FIN_WAIT1",
    "FIN_WAIT2",
    "TIME_WAIT",
    "CLOSE",
    "CLOSE_WAIT",
    "LAST_ACK",
    "LISTEN",
    "CLOSING",
    "NEW_SYN_RECV",
)

IP_VERSIONS = ("4", "6")


@dataclass(slots=True, frozen=True)
class SingleTarget:
    """One configured PID."""

    pid: int


@dataclass(slots=True, frozen=True)
class PidListTarget:
    """An explicit list of PIDs."""

    pids: tuple[int, ...]


@dataclass(slots=True, frozen=True)
class RegexTarget:
    """Every live process whose cmdline (or comm) matches the pattern."""

    pattern: re.Pattern


ProcessTarget = SingleTarget | PidListTarget | RegexTarget


@dataclass(slots=True, frozen=True)
class Limit:
    """
    A kernel limit value: either a finite number or unlimited.

    cgroup files spell "no limit" as the literal ``max``. That sentinel is kept
    as its own variant here and only becomes ``math.inf`` via ``as_float()``.
    """

    value: float = 0.0
    unlimited: bool = False

    @classmethod
    def finite(cls, value: float) -> "Limit":
        return cls(value=value)

    def as_float(self) -> float:
        return math.inf if self.unlimited else float(self.value)


UNLIMITED = Limit(unlimited=True)


@dataclass(slots=True, frozen=True)
class ProcSample:
    """Per-PID counters from /proc/<pid>/{stat,status,io}."""

    cpu_user_s: float = 0.0
    cpu_system_s: float = 0.0
    start_time_s: float | None = None
    mem_rss_bytes: int = 0
    mem_vms_bytes: int = 0
    mem_swap_bytes: int = 0
    io_rchar: int = 0
    io_wchar: int = 0
    io_syscr: int = 0
    io_syscw: int = 0
    io_read_bytes: int = 0
    io_write_bytes: int = 0
    io_cancelled_write_bytes: int = 0


# Counters summed element-wise by the aggregator.
SUMMED_FIELDS = (
    "cpu_user_s",
    "cpu_system_s",
    "mem_rss_bytes",
    "mem_vms_bytes",
    "mem_swap_bytes",
    "io_rchar",
    "io_wchar",
    "io_syscr",
    "io_syscw",
    "io_read_bytes",
    "io_write_bytes",
    "io_cancelled_write_bytes",
)


@dataclass(slots=True, frozen=True)
class AggregatedSample:
    """One logical "process" built from every PID in the target set."""

    members: int
    cpu_user_s: float = 0.0
    cpu_system_s: float = 0.0
    start_time_s: float = 0.0
    uptime_s: float = 0.0
    mem_rss_bytes: int = 0
    mem_vms_bytes: int = 0
    mem_swap_bytes: int = 0
    io_rchar: int = 0
    io_wchar: int = 0
    io_syscr: int = 0
    io_syscw: int = 0
    io_read_bytes: int = 0
    io_write_bytes: int = 0
    io_cancelled_write_bytes: int = 0
    has_start_time: bool = False

    @classmethod
    def empty(cls) -> "AggregatedSample":
        """The explicit all-zero sample for an empty target set."""
        return cls(members=0)


@dataclass(slots=True, frozen=True)
class CgroupCpu:
    """cpu.stat and cpu.max. ``None`` means the key was not observed."""

    usage_s: float | None = None
    user_s: float | None = None
    system_s: float | None = None
    throttled_s: float | None = None
    nr_periods: int | None = None
    nr_throttled: int | None = None
    limit_cores: Limit | None = None


@dataclass(slots=True, frozen=True)
class CgroupMemory:
    """memory.* scalars and memory.events counters."""

    current: Limit | None = None
    peak: Limit | None = None
    max: Limit | None = None
    high: Limit | None = None
    low: Limit | None = None
    events: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class CgroupSnapshot:
    cpu: CgroupCpu
    memory: CgroupMemory


@dataclass(slots=True, frozen=True)
class HostSnapshot:
    """Aggregate host CPU seconds per mode and memory totals in bytes. ``None`` = unreadable."""

    cpu_seconds: dict[str, float] | None = None
    memory_total: int | None = None
    memory_free: int | None = None
    memory_available: int | None = None
    memory_cached: int | None = None
    memory_buffers: int | None = None
    swap_total: int | None = None
    swap_free: int | None = None


@dataclass(slots=True, frozen=True)
class NetSnapshot:
    """Counters from /sys/class/net/<iface>/statistics. ``None`` = unreadable."""

    interface: str
    rx_bytes: int | None = None
    tx_bytes: int | None = None
    rx_packets: int | None = None
    tx_packets: int | None = None
    rx_errors: int | None = None
    tx_errors: int | None = None
    rx_dropped: int | None = None
    tx_dropped: int | None = None


@dataclass(slots=True, frozen=True)
class TcpConnectionCounts:
    """
    Connection counts keyed by (state, ip_version).

    ``counts`` always holds every TCP_STATES x IP_VERSIONS pair. Rows whose
    state code is not in the table are tallied per version in ``unknown``.
    """

    counts: dict[tuple[str, str], int]
    unknown: dict[str, int]

    @classmethod
    def zeroed(cls) -> "TcpConnectionCounts":
        return cls(
            counts={(state, version): 0 for state in TCP_STATES for version in IP_VERSIONS},
            unknown={version: 0 for version in IP_VERSIONS},
        )
