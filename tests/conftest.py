"""Shared fixtures: fake /proc, cgroup and /sys/class/net trees."""

import os
from pathlib import Path

import pytest

PROC_STAT = """cpu  1000 20 300 40000 50 6 7 8 0 0
cpu0 500 10 150 20000 25 3 3 4 0 0
intr 123456
ctxt 987654
btime 1700000000
processes 4242
"""

MEMINFO = """MemTotal:       16384000 kB
MemFree:         8192000 kB
MemAvailable:   12288000 kB
Buffers:          102400 kB
Cached:          2048000 kB
SwapCached:            0 kB
SwapTotal:       4096000 kB
SwapFree:        4000000 kB
"""

TCP_HEADER = (
    "  sl  local_address rem_address   st tx_queue rx_queue tr tm->when "
    "retrnsmt   uid  timeout inode\n"
)


class FakeProc:
    """Builds a /proc-like directory tree under a temporary root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.page_size = os.sysconf("SC_PAGE_SIZE")
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "stat").write_text(PROC_STAT)
        (self.root / "meminfo").write_text(MEMINFO)
        (self.root / "net").mkdir(exist_ok=True)

    def add_process(
        self,
        pid: int,
        comm: str = "worker",
        cmdline: str = "",
        utime: int = 100,
        stime: int = 50,
        starttime: int = 1000,
        rss_pages: int = 256,
        vms_pages: int = 1024,
        swap_kb: int = 0,
        io: dict[str, int] | None = None,
    ) -> Path:
        pid_dir = self.root / str(pid)
        pid_dir.mkdir()
        (pid_dir / "stat").write_text(
            f"{pid} ({comm}) S 1 {pid} {pid} 0 -1 4194560 100 0 0 0 "
            f"{utime} {stime} 0 0 20 0 1 0 {starttime} {vms_pages * self.page_size} {rss_pages} "
            + " ".join(["0"] * 28)
            + "\n"
        )
        (pid_dir / "statm").write_text(f"{vms_pages} {rss_pages} 0 0 0 0 0\n")
        (pid_dir / "status").write_text(
            f"Name:\t{comm}\nState:\tS (sleeping)\nPid:\t{pid}\n"
            f"VmSize:\t{vms_pages * self.page_size // 1024} kB\n"
            f"VmRSS:\t{rss_pages * self.page_size // 1024} kB\n"
            f"VmSwap:\t{swap_kb} kB\n"
        )
        (pid_dir / "comm").write_text(comm + "\n")
        (pid_dir / "cmdline").write_bytes(cmdline.replace(" ", "\0").encode() + (b"\0" if cmdline else b""))
        if io is not None:
            (pid_dir / "io").write_text("".join(f"{key}: {value}\n" for key, value in io.items()))
        return pid_dir

    def write_tcp(self, rows: list[str], ipv6_rows: list[str] | None = None) -> None:
        (self.root / "net" / "tcp").write_text(TCP_HEADER + "".join(r + "\n" for r in rows))
        if ipv6_rows is not None:
            (self.root / "net" / "tcp6").write_text(TCP_HEADER + "".join(r + "\n" for r in ipv6_rows))


@pytest.fixture
def fake_proc(tmp_path):
    """An empty fake /proc with host-level files in place."""
    return FakeProc(tmp_path / "proc")


@pytest.fixture
def cgroup_dir(tmp_path):
    """A cgroup v2 directory with typical file contents."""
    root = tmp_path / "cgroup"
    root.mkdir()
    (root / "cpu.stat").write_text(
        "usage_usec 2500000\nuser_usec 1500000\nsystem_usec 1000000\n"
        "nr_periods 40\nnr_throttled 3\nthrottled_usec 250000\n"
    )
    (root / "cpu.max").write_text("50000 100000\n")
    (root / "memory.current").write_text("104857600\n")
    (root / "memory.peak").write_text("209715200\n")
    (root / "memory.max").write_text("max\n")
    (root / "memory.high").write_text("max\n")
    (root / "memory.low").write_text("0\n")
    (root / "memory.events").write_text("low 0\nhigh 2\nmax 5\noom 1\noom_kill 1\n")
    return root


@pytest.fixture
def net_root(tmp_path):
    """A /sys/class/net tree with an eth0 interface."""
    stats = tmp_path / "net" / "eth0" / "statistics"
    stats.mkdir(parents=True)
    values = {
        "rx_bytes": 1000,
        "tx_bytes": 2000,
        "rx_packets": 10,
        "tx_packets": 20,
        "rx_errors": 1,
        "tx_errors": 2,
        "rx_dropped": 3,
        "tx_dropped": 4,
    }
    for name, value in values.items():
        (stats / name).write_text(f"{value}\n")
    return tmp_path / "net"
