"""TCP connection counts by state and IP version from /proc/net/tcp{,6}."""

from pathlib import Path

from pod_exporter.models import TCP_STATES, TcpConnectionCounts

# Kernel state codes 0x01..0x0C, in order.
STATE_BY_CODE = {code: name for code, name in enumerate(TCP_STATES, start=1)}

# ::ffff:0:0/96 as it appears in the hex address column of /proc/net/tcp6.
IPV4_MAPPED_PREFIX = "0000000000000000FFFF0000"


def is_ipv4_mapped(address: str) -> bool:
    """True for a tcp6 ``<32 hex>:<port>`` address in the IPv4-mapped range."""
    host, sep, _ = address.partition(":")
    if not sep or len(host) < len(IPV4_MAPPED_PREFIX):
        return False
    return host[: len(IPV4_MAPPED_PREFIX)].upper() == IPV4_MAPPED_PREFIX


def count_table(content: str, ip_version: str, counts: TcpConnectionCounts) -> None:
    """Add every data row of one socket table to ``counts``."""
    for line in content.splitlines()[1:]:
        cols = line.split()
        if len(cols) <= 3:
            continue
        try:
            code = int(cols[3], 16)
        except ValueError:
            continue

        version = ip_version
        # IPv4 peers on dual-stack sockets are listed in tcp6.
        if ip_version == "6" and (is_ipv4_mapped(cols[1]) or is_ipv4_mapped(cols[2])):
            version = "4"

        state = STATE_BY_CODE.get(code)
        if state is None:
            counts.unknown[version] += 1
        else:
            counts.counts[(state, version)] += 1


class TcpStateCounter:
    def __init__(self, proc_root: Path | str = "/proc") -> None:
        self._net = Path(proc_root) / "net"

    def sample(self) -> TcpConnectionCounts:
        counts = TcpConnectionCounts.zeroed()
        count_table((self._net / "tcp").read_text(), "4", counts)
        try:
            ipv6 = (self._net / "tcp6").read_text()
        except FileNotFoundError:
            # IPv6 disabled.
            ipv6 = ""
        count_table(ipv6, "6", counts)
        return counts
