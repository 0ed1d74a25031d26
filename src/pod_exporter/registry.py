"""Prometheus gauges fed by the samplers."""

from prometheus_client import CollectorRegistry, Gauge

from pod_exporter.config import Config
from pod_exporter.models import (
    HOST_CPU_MODES,
    AggregatedSample,
    CgroupSnapshot,
    HostSnapshot,
    Limit,
    NetSnapshot,
    TcpConnectionCounts,
)

HOST_CPU_LABEL = "all"


class _Family:
    """A Gauge plus the constant label values prepended to every sample."""

    def __init__(
        self,
        registry: CollectorRegistry,
        name: str,
        documentation: str,
        labelnames: tuple[str, ...] = (),
        namespace: str = "",
        const_labels: dict[str, str] | None = None,
    ) -> None:
        self._const = dict(const_labels or {})
        self._labelled = bool(self._const or labelnames)
        self.gauge = Gauge(
            name,
            documentation,
            labelnames=(*self._const, *labelnames),
            namespace=namespace,
            registry=registry,
        )

    def set(self, value: float, *labelvalues: str) -> None:
        if self._labelled:
            self.gauge.labels(*self._const.values(), *labelvalues).set(value)
        else:
            self.gauge.set(value)


class MetricsRegistry:
    """
    Owns a CollectorRegistry and the fixed catalogue of exported series.

    ``apply_*`` methods write one sampler's result. Fields a sampler did not
    observe (``None``) leave the previous value in place.
    """

    def __init__(self, config: Config | None = None) -> None:
        config = config or Config()
        self.registry = CollectorRegistry()
        self._namespace = config.metrics_prefix or ""
        self._static = dict(config.static_labels)

        host_labels = dict(self._static)
        if config.node_name:
            host_labels["node_name"] = config.node_name
        self._host_labels = host_labels

        self._build_cgroup()
        self._build_process()
        self._build_host()
        self._build_net()
        self.tcp_connections = self._family(
            "pod_tcp_connections",
            "Number of TCP connections by state and IP version from /proc/net/tcp{,6}",
            ("state", "ip_version"),
        )
        self.downward_info = self._family(
            "kubernetes_downward_info",
            "Downward API fields exposed as labels; value is always 1.",
            ("field", "value"),
        )
        self._build_resources(config)

    def _family(self, name, documentation, labelnames=(), const_labels=None) -> _Family:
        return _Family(
            self.registry,
            name,
            documentation,
            labelnames,
            namespace=self._namespace,
            const_labels=self._static if const_labels is None else const_labels,
        )

    def _build_cgroup(self) -> None:
        f = self._family
        self.cgroup_cpu_usage = f("cgroup_cpu_usage_seconds", "Total CPU time of the cgroup (usage_usec / 1e6)")
        self.cgroup_cpu_user = f("cgroup_cpu_user_seconds", "User CPU time of the cgroup (user_usec / 1e6)")
        self.cgroup_cpu_system = f("cgroup_cpu_system_seconds", "System CPU time of the cgroup (system_usec / 1e6)")
        self.cgroup_cpu_nr_periods = f(
            "cgroup_cpu_nr_periods_total", "Number of elapsed enforcement periods of the cgroup"
        )
        self.cgroup_cpu_nr_throttled = f(
            "cgroup_cpu_nr_throttled_total", "Number of throttled periods of the cgroup"
        )
        self.cgroup_cpu_throttled = f(
            "cgroup_cpu_throttled_seconds", "Time the cgroup has been throttled (throttled_usec / 1e6)"
        )
        self.cgroup_cpu_limit = f(
            "cgroup_cpu_limit_cores", "CPU limit in cores from cpu.max (quota/period), +Inf if unlimited"
        )
        self.cgroup_memory = {
            "current": f("cgroup_memory_current_bytes", "Current memory usage (memory.current)"),
            "peak": f("cgroup_memory_peak_bytes", "Peak memory usage (memory.peak)"),
            "max": f("cgroup_memory_max_bytes", "Memory limit (memory.max), +Inf if unlimited"),
            "high": f("cgroup_memory_high_bytes", "Memory throttling threshold (memory.high)"),
            "low": f("cgroup_memory_low_bytes", "Memory protection threshold (memory.low)"),
        }
        self.cgroup_memory_events = f(
            "cgroup_memory_events_total", "Cumulative memory events from memory.events", ("type",)
        )

    def _build_process(self) -> None:
        f = self._family
        self.process = {
            "cpu_user_s": f("process_cpu_user_seconds", "User CPU time of the observed processes"),
            "cpu_system_s": f("process_cpu_system_seconds", "System CPU time of the observed processes"),
            "start_time_s": f(
                "process_start_time_seconds", "Start time of the oldest observed process since epoch"
            ),
            "uptime_s": f("process_uptime_seconds", "Seconds the oldest observed process has been running"),
            "mem_rss_bytes": f("process_memory_rss_bytes", "Resident set size of the observed processes"),
            "mem_vms_bytes": f("process_memory_vms_bytes", "Virtual memory size of the observed processes"),
            "mem_swap_bytes": f("process_memory_swap_bytes", "Swap usage of the observed processes"),
            "io_rchar": f("process_io_rchar_bytes_total", "Characters read (rchar) from /proc/<pid>/io"),
            "io_wchar": f("process_io_wchar_bytes_total", "Characters written (wchar) from /proc/<pid>/io"),
            "io_syscr": f("process_io_syscr_total", "Read syscalls (syscr) from /proc/<pid>/io"),
            "io_syscw": f("process_io_syscw_total", "Write syscalls (syscw) from /proc/<pid>/io"),
            "io_read_bytes": f("process_io_read_bytes_total", "Bytes read from storage (read_bytes)"),
            "io_write_bytes": f("process_io_write_bytes_total", "Bytes written to storage (write_bytes)"),
            "io_cancelled_write_bytes": f(
                "process_io_cancelled_write_bytes_total", "Cancelled write bytes (cancelled_write_bytes)"
            ),
        }

    def _build_host(self) -> None:
        labels = self._host_labels
        self.host_cpu_seconds = self._family(
            "host_cpu_seconds_total",
            "Host CPU time per mode from /proc/stat (seconds)",
            ("cpu", "mode"),
            const_labels=labels,
        )
        self.host_memory = {
            "memory_total": self._family("host_memory_total_bytes", "MemTotal from /proc/meminfo", const_labels=labels),
            "memory_free": self._family("host_memory_free_bytes", "MemFree from /proc/meminfo", const_labels=labels),
            "memory_available": self._family(
                "host_memory_available_bytes", "MemAvailable from /proc/meminfo", const_labels=labels
            ),
            "memory_cached": self._family("host_memory_cached_bytes", "Cached from /proc/meminfo", const_labels=labels),
            "memory_buffers": self._family(
                "host_memory_buffers_bytes", "Buffers from /proc/meminfo", const_labels=labels
            ),
            "swap_total": self._family("host_swap_total_bytes", "SwapTotal from /proc/meminfo", const_labels=labels),
            "swap_free": self._family("host_swap_free_bytes", "SwapFree from /proc/meminfo", const_labels=labels),
        }

    def _build_net(self) -> None:
        names = {
            "rx_bytes": ("receive_bytes", "Bytes received"),
            "tx_bytes": ("transmit_bytes", "Bytes transmitted"),
            "rx_packets": ("receive_packets", "Packets received"),
            "tx_packets": ("transmit_packets", "Packets transmitted"),
            "rx_errors": ("receive_errors", "Receive errors"),
            "tx_errors": ("transmit_errors", "Transmit errors"),
            "rx_dropped": ("receive_dropped", "Dropped received packets"),
            "tx_dropped": ("transmit_dropped", "Dropped transmitted packets"),
        }
        self.net = {
            counter: self._family(
                f"pod_network_{suffix}_total",
                f"{doc} on NET_INTERFACE (/sys/class/net/<iface>/statistics/{counter})",
            )
            for counter, (suffix, doc) in names.items()
        }

    def _build_resources(self, config: Config) -> None:
        resources = config.resources
        self.resources: dict[str, _Family] = {}
        if resources.is_empty():
            return
        declared = {
            "k8s_cpu_requests_millicores": ("CPU requests in millicores", resources.cpu_requests_millicores),
            "k8s_cpu_limits_millicores": ("CPU limits in millicores", resources.cpu_limits_millicores),
            "k8s_memory_requests_bytes": ("Memory requests in bytes", resources.memory_requests_bytes),
            "k8s_memory_limits_bytes": ("Memory limits in bytes", resources.memory_limits_bytes),
        }
        for name, (doc, value) in declared.items():
            family = self._family(name, f"Kubernetes {doc} for this container")
            if value is not None:
                family.set(value)
            self.resources[name] = family

    def apply_cgroup(self, snapshot: CgroupSnapshot) -> None:
        cpu = snapshot.cpu
        for family, value in (
            (self.cgroup_cpu_usage, cpu.usage_s),
            (self.cgroup_cpu_user, cpu.user_s),
            (self.cgroup_cpu_system, cpu.system_s),
            (self.cgroup_cpu_throttled, cpu.throttled_s),
            (self.cgroup_cpu_nr_periods, cpu.nr_periods),
            (self.cgroup_cpu_nr_throttled, cpu.nr_throttled),
        ):
            if value is not None:
                family.set(value)
        if cpu.limit_cores is not None:
            self.cgroup_cpu_limit.set(cpu.limit_cores.as_float())

        memory = snapshot.memory
        for name, family in self.cgroup_memory.items():
            limit: Limit | None = getattr(memory, name)
            if limit is not None:
                family.set(limit.as_float())
        # Overwritten with the kernel's cumulative value, not incremented.
        for event, count in memory.events.items():
            self.cgroup_memory_events.set(count, event)

    def apply_process(self, sample: AggregatedSample) -> None:
        for name, family in self.process.items():
            if name in ("start_time_s", "uptime_s") and sample.members and not sample.has_start_time:
                continue
            family.set(getattr(sample, name))

    def apply_host(self, snapshot: HostSnapshot) -> None:
        if snapshot.cpu_seconds is not None:
            for mode in HOST_CPU_MODES:
                self.host_cpu_seconds.set(snapshot.cpu_seconds.get(mode, 0.0), HOST_CPU_LABEL, mode)
        for name, family in self.host_memory.items():
            value = getattr(snapshot, name)
            if value is not None:
                family.set(value)

    def apply_net(self, snapshot: NetSnapshot | None) -> None:
        if snapshot is None:
            return
        for name, family in self.net.items():
            value = getattr(snapshot, name)
            if value is not None:
                family.set(value)

    def apply_tcp(self, counts: TcpConnectionCounts) -> None:
        for (state, ip_version), count in counts.counts.items():
            self.tcp_connections.set(count, state, ip_version)

    def apply_downward_info(self, info: dict[str, str]) -> None:
        for field_name, value in info.items():
            self.downward_info.set(1, field_name, value)

    def sample_value(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        """Current value of a series by its full name (prefix included)."""
        return self.registry.get_sample_value(name, labels or {})
