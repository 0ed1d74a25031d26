"""Per-interface counters from /sys/class/net/<iface>/statistics."""

import logging
from pathlib import Path

from pod_exporter.models import NetSnapshot

logger = logging.getLogger(__name__)

COUNTERS = (
    "rx_bytes",
    "tx_bytes",
    "rx_packets",
    "tx_packets",
    "rx_errors",
    "tx_errors",
    "rx_dropped",
    "tx_dropped",
)


class NetSampler:
    def __init__(self, sys_class_net: Path | str = "/sys/class/net") -> None:
        self._root = Path(sys_class_net)

    def sample(self, iface: str) -> NetSnapshot | None:
        """
        Read the eight counters for ``iface``.

        Returns None when monitoring is disabled (empty name) or the interface
        does not exist in this network namespace. A counter that cannot be read
        is left as None.
        """
        if not iface:
            return None

        base = self._root / iface / "statistics"
        if not base.is_dir():
            return None

        values: dict[str, int] = {}
        for name in COUNTERS:
            try:
                values[name] = int((base / name).read_text().strip())
            except (OSError, ValueError) as exc:
                logger.debug("skipping %s for %s: %s", name, iface, exc)
        return NetSnapshot(interface=iface, **values)
