"""psutil-backed metrics provider.

``MetricsProvider.refresh()`` reads every metric the dashboard shows in one
pass and returns an immutable ``Snapshot``. Rates (network throughput) are
computed against the previous refresh, so the first snapshot reports 0.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import psutil

from sysdash.errors import ProviderError
from sysdash.history import CpuSample, MemorySample

logger = logging.getLogger(__name__)


# ── Data types ─────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class DiskInfo:
    name: str
    mount_point: str
    file_system: str
    total: int
    used: int
    available: int
    usage_percent: float


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    interface: str
    bytes_received: int
    bytes_transmitted: int
    packets_received: int
    packets_transmitted: int
    rx_rate: float = 0.0  # bytes/s since the previous refresh
    tx_rate: float = 0.0


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    pid: int
    name: str
    cpu_percent: float
    memory_percent: float
    memory_rss: int  # Bytes
    status: str


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Everything the dashboard renders for one refresh."""

    timestamp: datetime
    cpu_percent: float = 0.0
    cpu_per_core: tuple[float, ...] = ()
    cpu_count: int = 0
    cpu_frequency_mhz: float = 0.0
    memory_used: int = 0
    memory_total: int = 0
    memory_percent: float = 0.0
    swap_used: int = 0
    swap_total: int = 0
    load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    uptime_seconds: float = 0.0
    disks: tuple[DiskInfo, ...] = ()
    networks: tuple[NetworkInfo, ...] = ()
    processes: tuple[ProcessInfo, ...] = ()
    process_count: int = 0

    def cpu_sample(self) -> CpuSample:
        return CpuSample(self.timestamp, self.cpu_percent, self.cpu_frequency_mhz)

    def memory_sample(self) -> MemorySample:
        return MemorySample(
            self.timestamp, self.memory_percent, self.memory_used, self.memory_total
        )

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(timestamp=datetime.now())


# ── Provider ───────────────────────────────────────────────────────────────


@dataclass
class _NetCounters:
    bytes_recv: int
    bytes_sent: int


@dataclass
class MetricsProvider:
    """Collects host metrics with psutil.

    Per-process errors (the process exited, access denied, zombie) skip that
    process. Any other psutil or OS failure is raised as ``ProviderError``.
    """

    process_monitoring: bool = True
    max_processes: int = 20
    _last: Snapshot | None = field(default=None, init=False, repr=False)
    _prev_net: dict[str, _NetCounters] = field(default_factory=lambda: {}, init=False, repr=False)
    _prev_time: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        # Warm-up psutil internal deltas (first call returns 0.0)
        psutil.cpu_percent(interval=None, percpu=True)
        psutil.cpu_percent(interval=None)

    def refresh(self) -> Snapshot:
        """Collect a fresh snapshot and remember it for the accessors."""
        try:
            snapshot = self._collect()
        except (psutil.Error, OSError) as e:
            logger.error("Metrics collection failed: %s", e, exc_info=True)
            raise ProviderError(f"metrics collection failed: {e}") from e
        self._last = snapshot
        return snapshot

    @property
    def last(self) -> Snapshot:
        return self._last if self._last is not None else Snapshot.empty()

    def cpu_usage(self) -> float:
        return self.last.cpu_percent

    def memory_usage_percent(self) -> float:
        return self.last.memory_percent

    def disk_info(self) -> list[DiskInfo]:
        return list(self.last.disks)

    def network_info(self) -> list[NetworkInfo]:
        return list(self.last.networks)

    def process_list(self) -> list[ProcessInfo]:
        return list(self.last.processes)

    # ── Collection ─────────────────────────────────────────────────────────

    def _collect(self) -> Snapshot:
        now = time.monotonic()

        cpu_total = psutil.cpu_percent(interval=None)
        per_core = psutil.cpu_percent(interval=None, percpu=True)
        freq = _read_frequency()

        ram = psutil.virtual_memory()
        swap = psutil.swap_memory()
        la = os.getloadavg()

        if self.process_monitoring:
            processes, process_count = _read_processes(self.max_processes)
        else:
            processes, process_count = (), len(psutil.pids())

        snapshot = Snapshot(
            timestamp=datetime.now(),
            cpu_percent=float(cpu_total),
            cpu_per_core=tuple(float(p) for p in per_core),
            cpu_count=psutil.cpu_count() or len(per_core),
            cpu_frequency_mhz=freq,
            memory_used=ram.used,
            memory_total=ram.total,
            # Computed like the gauge label so it agrees with used/total
            memory_percent=(ram.used / ram.total * 100.0) if ram.total else 0.0,
            swap_used=swap.used,
            swap_total=swap.total,
            load_avg=(la[0], la[1], la[2]),
            uptime_seconds=max(0.0, time.time() - psutil.boot_time()),
            disks=_read_disks(),
            networks=self._read_networks(now),
            processes=processes,
            process_count=process_count,
        )
        self._prev_time = now
        return snapshot

    def _read_networks(self, now: float) -> tuple[NetworkInfo, ...]:
        counters: dict[str, Any] = psutil.net_io_counters(pernic=True) or {}
        dt = now - self._prev_time if self._prev_net else 0.0
        result: list[NetworkInfo] = []
        current: dict[str, _NetCounters] = {}

        for iface in sorted(counters):
            c = counters[iface]
            rx_rate = tx_rate = 0.0
            prev = self._prev_net.get(iface)
            if prev is not None and dt > 0:
                rx_rate = max(0.0, (c.bytes_recv - prev.bytes_recv) / dt)
                tx_rate = max(0.0, (c.bytes_sent - prev.bytes_sent) / dt)
            current[iface] = _NetCounters(c.bytes_recv, c.bytes_sent)
            result.append(
                NetworkInfo(
                    interface=iface,
                    bytes_received=c.bytes_recv,
                    bytes_transmitted=c.bytes_sent,
                    packets_received=c.packets_recv,
                    packets_transmitted=c.packets_sent,
                    rx_rate=rx_rate,
                    tx_rate=tx_rate,
                )
            )

        self._prev_net = current
        return tuple(result)


def _read_frequency() -> float:
    """Current CPU frequency in MHz, or 0.0 where the platform has none."""
    try:
        freq = psutil.cpu_freq()
    except (AttributeError, NotImplementedError, OSError):
        return 0.0
    return float(freq.current) if freq else 0.0


def _read_disks() -> tuple[DiskInfo, ...]:
    disks: list[DiskInfo] = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError:
            # Unmounted or unreadable (e.g. empty optical drive)
            continue
        disks.append(
            DiskInfo(
                name=part.device,
                mount_point=part.mountpoint,
                file_system=part.fstype,
                total=usage.total,
                used=usage.used,
                available=usage.free,
                usage_percent=usage.percent,
            )
        )
    return tuple(disks)


def _read_processes(limit: int) -> tuple[tuple[ProcessInfo, ...], int]:
    """Return the top *limit* processes by CPU, plus the total process count."""
    procs: list[ProcessInfo] = []
    count = 0
    for proc in psutil.process_iter(
        ["pid", "name", "cpu_percent", "memory_percent", "memory_info", "status"],
    ):
        count += 1
        try:
            info: dict[str, Any] = proc.info
            mem_info = info.get("memory_info")
            procs.append(
                ProcessInfo(
                    pid=info.get("pid", 0),
                    name=info.get("name") or "?",
                    cpu_percent=info.get("cpu_percent") or 0.0,
                    memory_percent=info.get("memory_percent") or 0.0,
                    memory_rss=mem_info.rss if mem_info else 0,
                    status=info.get("status") or "?",
                )
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, AttributeError):
            continue
    procs.sort(key=lambda p: p.cpu_percent, reverse=True)
    return tuple(procs[:limit]), count
