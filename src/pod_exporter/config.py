"""Configuration loaded from environment variables."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from pod_exporter.errors import ConfigurationError
from pod_exporter.models import PidListTarget, ProcessTarget, RegexTarget, SingleTarget

logger = logging.getLogger(__name__)

DEFAULT_LISTEN = "0.0.0.0:9100"
DEFAULT_INTERVAL_SECS = 5
MIN_INTERVAL_SECS = 1

_LABEL_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_METRIC_PREFIX = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")

# Label names the exported series already carry.
SERIES_LABELS = frozenset({"cpu", "mode", "state", "ip_version", "type", "field", "value", "node_name"})


@dataclass(slots=True, frozen=True)
class DeclaredResources:
    """Requests/limits handed to the container, exported as constant gauges."""

    cpu_requests_millicores: float | None = None
    cpu_limits_millicores: float | None = None
    memory_requests_bytes: float | None = None
    memory_limits_bytes: float | None = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.cpu_requests_millicores,
                self.cpu_limits_millicores,
                self.memory_requests_bytes,
                self.memory_limits_bytes,
            )
        )


@dataclass(slots=True, frozen=True)
class Config:
    listen_host: str = "0.0.0.0"
    listen_port: int = 9100
    cgroup_root: Path = Path("/sys/fs/cgroup")
    proc_root: Path = Path("/proc")
    sys_class_net: Path = Path("/sys/class/net")
    net_interface: str = "eth0"
    downward_dir: Path | None = None
    target: ProcessTarget | None = None
    metrics_prefix: str | None = None
    static_labels: dict[str, str] = field(default_factory=dict)
    update_interval_secs: int = DEFAULT_INTERVAL_SECS
    node_name: str | None = None
    resources: DeclaredResources = field(default_factory=DeclaredResources)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Config":
        """Build a Config, raising ConfigurationError on any invalid setting."""
        env = os.environ if environ is None else environ

        host, port = parse_listen_addr(env.get("EXPORTER_LISTEN", DEFAULT_LISTEN))

        downward = env.get("DOWNWARD_API_DIR")
        node_name = (env.get("NODE_NAME") or "").strip() or None

        return cls(
            listen_host=host,
            listen_port=port,
            cgroup_root=Path(env.get("CGROUP_ROOT", "/sys/fs/cgroup")),
            proc_root=Path(env.get("PROC_ROOT", "/proc")),
            sys_class_net=Path(env.get("SYS_CLASS_NET", "/sys/class/net")),
            net_interface=env.get("NET_INTERFACE", "eth0").strip(),
            downward_dir=Path(downward) if downward else None,
            target=parse_target(env),
            metrics_prefix=normalize_prefix(env.get("METRICS_PREFIX"))
            or normalize_prefix(env.get("METRICS_NAMESPACE")),
            static_labels=parse_static_labels(env.get("METRICS_STATIC_LABELS", "")),
            update_interval_secs=parse_interval(env.get("METRICS_UPDATE_INTERVAL_SECS")),
            node_name=node_name,
            resources=DeclaredResources(
                cpu_requests_millicores=_optional_float(env, "CPU_REQUESTS_MILLICORES"),
                cpu_limits_millicores=_optional_float(env, "CPU_LIMITS_MILLICORES"),
                memory_requests_bytes=_optional_float(env, "MEMORY_REQUESTS_BYTES"),
                memory_limits_bytes=_optional_float(env, "MEMORY_LIMITS_BYTES"),
            ),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )


def parse_listen_addr(raw: str) -> tuple[str, int]:
    """``host:port`` or ``[v6addr]:port``."""
    raw = raw.strip()
    host, sep, port_text = raw.rpartition(":")
    if not sep or not host:
        raise ConfigurationError(f"EXPORTER_LISTEN parse error: {raw!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigurationError(f"EXPORTER_LISTEN parse error: {raw!r} (bracket IPv6 addresses)")
    try:
        port = int(port_text)
    except ValueError:
        raise ConfigurationError(f"EXPORTER_LISTEN parse error: bad port in {raw!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigurationError(f"EXPORTER_LISTEN parse error: port out of range in {raw!r}")
    return host, port


def parse_target(env) -> ProcessTarget | None:
    """
    Process target from TARGET_PID_REGEXP, TARGET_PIDS or TARGET_PID.

    The first variable that is set wins, in that order.
    """
    regex = env.get("TARGET_PID_REGEXP")
    if regex:
        try:
            return RegexTarget(re.compile(regex))
        except re.error as exc:
            raise ConfigurationError(f"TARGET_PID_REGEXP is not a valid regex: {exc}") from exc

    pid_list = env.get("TARGET_PIDS")
    if pid_list is not None:
        pids = []
        for token in pid_list.split(","):
            token = token.strip()
            if not token:
                continue
            pids.append(_parse_pid(token, "TARGET_PIDS"))
        if not pids:
            logger.warning("TARGET_PIDS is empty; process metrics will report zero")
        return PidListTarget(tuple(pids))

    single = env.get("TARGET_PID")
    if single is not None and single.strip():
        return SingleTarget(_parse_pid(single.strip(), "TARGET_PID"))

    return None


def _parse_pid(token: str, name: str) -> int:
    try:
        pid = int(token)
    except ValueError:
        raise ConfigurationError(f"{name} parse error: {token!r} is not a PID") from None
    if pid <= 0:
        raise ConfigurationError(f"{name} parse error: {token!r} is not a PID")
    return pid


def parse_static_labels(raw: str) -> dict[str, str]:
    """``k=v,k2=v2``; pairs without ``=`` or with an empty key are dropped."""
    labels: dict[str, str] = {}
    for pair in raw.split(","):
        key, sep, value = pair.strip().partition("=")
        key = key.strip()
        if not (sep and key):
            continue
        if not _LABEL_NAME.fullmatch(key) or key.startswith("__"):
            raise ConfigurationError(f"METRICS_STATIC_LABELS: invalid label name {key!r}")
        if key in SERIES_LABELS:
            raise ConfigurationError(f"METRICS_STATIC_LABELS: label name {key!r} is used by exported series")
        labels[key] = value.strip()
    return labels


def normalize_prefix(raw: str | None) -> str | None:
    """Trim whitespace and trailing underscores. Empty becomes None."""
    if raw is None:
        return None
    trimmed = raw.strip().rstrip("_")
    if trimmed and not _METRIC_PREFIX.fullmatch(trimmed):
        raise ConfigurationError(f"METRICS_PREFIX: {raw!r} is not a valid metric name prefix")
    return trimmed or None


def parse_interval(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_INTERVAL_SECS
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"METRICS_UPDATE_INTERVAL_SECS parse error: {raw!r}") from None
    # 0 would make the refresh loop spin.
    return max(value, MIN_INTERVAL_SECS)


def _optional_float(env, name: str) -> float | None:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} parse error: {raw!r}") from None
