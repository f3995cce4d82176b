"""Platform-specific resource usage sources.

Each source implements SampleSourcePort. Reading a value never raises: a
failing reading is logged and the source reports the last value it read
successfully (0.0 until the first success).
"""

import logging
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

import psutil

from insightops.core.models import SystemSnapshot
from insightops.core.ports import Clock, SampleSourcePort

logger = logging.getLogger(__name__)


def _percent(value: float) -> float:
    return round(min(100.0, max(0.0, float(value))), 2)


class _BaseSampleSource(ABC):
    """Shared last-known-value bookkeeping and storage sampling."""

    def __init__(self, storage_path: str = "/", clock: Clock = time.time) -> None:
        self._storage_path = storage_path
        self._clock = clock
        self._last: dict[str, float] = {"cpu": 0.0, "memory": 0.0, "storage": 0.0}

    def _read(self, field: str, reader: Callable[[], float | None]) -> float:
        try:
            value = reader()
        except (OSError, ValueError, IndexError, psutil.Error):
            logger.warning(
                "Failed to read %s usage, reusing last known value",
                field,
                exc_info=True,
                extra={"sample_field": field},
            )
            return self._last[field]
        if value is None:
            return self._last[field]
        self._last[field] = _percent(value)
        return self._last[field]

    def _storage_usage(self) -> float:
        return psutil.disk_usage(self._storage_path).percent

    @abstractmethod
    def _cpu_usage(self) -> float | None: ...

    @abstractmethod
    def _memory_usage(self) -> float | None: ...

    def sample(self) -> SystemSnapshot:
        return SystemSnapshot(
            cpu_usage_percent=self._read("cpu", self._cpu_usage),
            memory_usage_percent=self._read("memory", self._memory_usage),
            storage_usage_percent=self._read("storage", self._storage_usage),
            timestamp=self._clock(),
        )


class LinuxProcSampleSource(_BaseSampleSource):
    """Node-wide usage read from the Linux /proc filesystem.

    CPU usage is the busy share of jiffies elapsed since the previous call,
    so the first call reports usage since boot. Memory usage is
    (MemTotal - MemAvailable) / MemTotal.
    """

    def __init__(
        self,
        storage_path: str = "/",
        clock: Clock = time.time,
        proc_root: str = "/proc",
    ) -> None:
        super().__init__(storage_path, clock)
        self._proc = Path(proc_root)
        self._last_total = 0
        self._last_idle = 0

    def _cpu_usage(self) -> float | None:
        first_line = (self._proc / "stat").read_text().splitlines()[0]
        values = [int(v) for v in first_line.split()[1:]]
        # idle + iowait
        idle = values[3] + (values[4] if len(values) > 4 else 0)
        total = sum(values)
        total_delta = total - self._last_total
        idle_delta = idle - self._last_idle
        self._last_total, self._last_idle = total, idle
        if total_delta <= 0:
            return 0.0
        return (1.0 - idle_delta / total_delta) * 100

    def _memory_usage(self) -> float | None:
        info: dict[str, int] = {}
        for line in (self._proc / "meminfo").read_text().splitlines():
            key, _, rest = line.partition(":")
            digits = rest.strip().split(" ")[0]
            if digits.isdigit():
                info[key.strip()] = int(digits)
        total = info.get("MemTotal")
        available = info.get("MemAvailable")
        if not total or available is None:
            return None
        return (total - available) / total * 100


class PsutilSampleSource(_BaseSampleSource):
    """Node-wide usage from psutil (Windows, macOS, BSD)."""

    def __init__(self, storage_path: str = "/", clock: Clock = time.time) -> None:
        super().__init__(storage_path, clock)
        # First call primes psutil's CPU delta and always returns 0.0
        psutil.cpu_percent(interval=None)

    def _cpu_usage(self) -> float | None:
        return psutil.cpu_percent(interval=None)

    def _memory_usage(self) -> float | None:
        return psutil.virtual_memory().percent


class ProcessSampleSource(_BaseSampleSource):
    """Process-level approximation for platforms without node-wide counters.

    CPU usage is this process' CPU time divided across all cores; memory
    usage is the resident set as a share of physical memory.
    """

    def __init__(self, storage_path: str = "/", clock: Clock = time.time) -> None:
        super().__init__(storage_path, clock)
        self._process = psutil.Process()
        self._cpu_count = psutil.cpu_count() or 1
        self._process.cpu_percent(interval=None)

    def _cpu_usage(self) -> float | None:
        return self._process.cpu_percent(interval=None) / self._cpu_count

    def _memory_usage(self) -> float | None:
        return self._process.memory_percent()


def select_sample_source(
    storage_path: str = "/",
    platform: str | None = None,
    clock: Clock = time.time,
) -> SampleSourcePort:
    """Pick the sample source appropriate for the running platform.

    Args:
        storage_path: Filesystem path whose volume usage is reported.
        platform: Override for sys.platform (used in tests).
        clock: Timestamp source for snapshots.
    """
    platform = platform or sys.platform
    if platform.startswith("linux") and Path("/proc/stat").exists():
        source: SampleSourcePort = LinuxProcSampleSource(storage_path, clock)
    elif platform.startswith(("win32", "darwin", "freebsd")):
        source = PsutilSampleSource(storage_path, clock)
    else:
        source = ProcessSampleSource(storage_path, clock)
    logger.info(
        "Selected %s for platform %s",
        type(source).__name__,
        platform,
        extra={"platform": platform},
    )
    return source
