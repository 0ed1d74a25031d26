"""Background refresh loop for pod_exporter."""

import logging
import threading
import time
from collections.abc import Callable

from pod_exporter.cgroup import CgroupSampler
from pod_exporter.config import MIN_INTERVAL_SECS, Config
from pod_exporter.errors import MissingSource
from pod_exporter.host import HostSampler
from pod_exporter.logs import log_failure
from pod_exporter.models import AggregatedSample
from pod_exporter.net import NetSampler
from pod_exporter.process import ProcSampler, aggregate
from pod_exporter.registry import MetricsRegistry
from pod_exporter.targets import ProcessTargetResolver
from pod_exporter.tcp import TcpStateCounter

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Runs one sampling cycle per interval and writes the results to a registry.

    Runs in a separate daemon thread. Scrapes read the registry's gauges
    directly and never wait on a cycle. Each sampler category has its own
    error boundary, so one failing source neither aborts its siblings nor
    stops the loop.
    """

    def __init__(
        self,
        config: Config,
        registry: MetricsRegistry,
        resolver: ProcessTargetResolver | None = None,
    ) -> None:
        """
        Initialize the Scheduler.

        Args:
            config: Startup configuration (paths, target, interval).
            registry: Sink for sampled values.
            resolver: Target resolver; one is built from the config if omitted.
        """
        self._config = config
        self._registry = registry
        self._interval = float(max(config.update_interval_secs, MIN_INTERVAL_SECS))
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._resolver = resolver or ProcessTargetResolver(config.proc_root)
        self._proc = ProcSampler(config.proc_root)
        self._cgroup = CgroupSampler(config.cgroup_root)
        self._host = HostSampler(config.proc_root)
        self._net = NetSampler(config.sys_class_net)
        self._tcp = TcpStateCounter(config.proc_root)

        self.cycles = 0
        self.last_process_sample: AggregatedSample | None = None

    @property
    def interval(self) -> float:
        """Get the refresh interval in seconds."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the refresh interval."""
        self._interval = max(float(MIN_INTERVAL_SECS), value)

    @property
    def is_running(self) -> bool:
        """Check if the refresh thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the refresh thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name="Scheduler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the refresh thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run_loop(self) -> None:
        """Main loop running in the background thread."""
        while not self._stop_event.is_set():
            started = time.monotonic()
            self.run_cycle()
            logger.debug(
                "metrics updated in %.3fs, going to sleep for %.0fs",
                time.monotonic() - started,
                self._interval,
            )

            # Wait for the interval or until stop is requested
            self._stop_event.wait(timeout=self._interval)

    def _run_category(self, name: str, update: Callable[[], None], **fields) -> bool:
        try:
            update()
        except MissingSource as exc:
            logger.debug("skipping %s metrics: %s", name, exc)
            return False
        except Exception as exc:
            log_failure(logger, f"updating {name} metrics failed", exc, **fields)
            return False
        return True

    def run_cycle(self) -> dict[str, bool]:
        """
        Run every sampler once, sequentially.

        Returns which categories succeeded, keyed by category name.
        """
        results = {"cgroup": self._run_category("cgroup", self._update_cgroup)}
        if self._config.target is not None:
            results["process"] = self._run_category("process", self._update_process)
        results["host"] = self._run_category("host", self._update_host)
        results["tcp"] = self._run_category("tcp", self._update_tcp)
        results["net"] = self._run_category(
            "net", self._update_net, iface=self._config.net_interface
        )
        self.cycles += 1
        return results

    def _update_cgroup(self) -> None:
        self._registry.apply_cgroup(self._cgroup.sample())

    def _update_process(self) -> None:
        pids = self._resolver.resolve(self._config.target)
        sample = aggregate(self._proc.collect(pids))
        self._registry.apply_process(sample)
        self.last_process_sample = sample

    def _update_host(self) -> None:
        self._registry.apply_host(self._host.sample())

    def _update_tcp(self) -> None:
        self._registry.apply_tcp(self._tcp.sample())

    def _update_net(self) -> None:
        self._registry.apply_net(self._net.sample(self._config.net_interface))
