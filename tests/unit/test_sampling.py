"""Tests for the platform sample sources."""

from pathlib import Path

import pytest

from insightops.adapters.sampling import (
    _BaseSampleSource,
    LinuxProcSampleSource,
    ProcessSampleSource,
    PsutilSampleSource,
    select_sample_source,
)
from insightops.core.ports import SampleSourcePort

MEMINFO = """MemTotal:       16000000 kB
MemFree:         2000000 kB
MemAvailable:    4000000 kB
Buffers:          100000 kB
"""


def _write_stat(proc: Path, user: int, idle: int, iowait: int = 0) -> None:
    # user nice system idle iowait irq softirq steal
    (proc / "stat").write_text(
        f"cpu  {user} 0 0 {idle} {iowait} 0 0 0\ncpu0 1 0 0 1 0 0 0 0\n"
    )


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    """Fake /proc tree with stat and meminfo."""
    _write_stat(tmp_path, user=100, idle=300)
    (tmp_path / "meminfo").write_text(MEMINFO)
    return tmp_path


class TestLinuxProcSampleSource:
    """Tests for the /proc reader."""

    @pytest.mark.runtime
    def test_reads_memory_usage(self, proc_root, tmp_path, clock) -> None:
        """Memory usage is (total - available) / total."""
        source = LinuxProcSampleSource(str(tmp_path), clock, proc_root=str(proc_root))

        snapshot = source.sample()

        assert snapshot.memory_usage_percent == 75.0
        assert snapshot.timestamp == clock.now

    @pytest.mark.runtime
    def test_cpu_usage_uses_delta_between_samples(self, proc_root, tmp_path, clock) -> None:
        """CPU usage is the busy share of jiffies since the previous sample."""
        source = LinuxProcSampleSource(str(tmp_path), clock, proc_root=str(proc_root))

        first = source.sample()
        _write_stat(proc_root, user=150, idle=340, iowait=10)
        second = source.sample()

        assert first.cpu_usage_percent == 25.0
        # 50 busy jiffies out of 100 elapsed
        assert second.cpu_usage_percent == 50.0

    @pytest.mark.runtime
    def test_values_are_within_percent_range(self, proc_root, tmp_path, clock) -> None:
        snapshot = LinuxProcSampleSource(
            str(tmp_path), clock, proc_root=str(proc_root)
        ).sample()

        for value in (
            snapshot.cpu_usage_percent,
            snapshot.memory_usage_percent,
            snapshot.storage_usage_percent,
        ):
            assert 0.0 <= value <= 100.0

    @pytest.mark.runtime
    def test_unreadable_value_falls_back_to_last_known(
        self, proc_root, tmp_path, clock
    ) -> None:
        """A failed reading reuses the previous successful one."""
        source = LinuxProcSampleSource(str(tmp_path), clock, proc_root=str(proc_root))
        source.sample()

        (proc_root / "meminfo").unlink()
        (proc_root / "stat").write_text("garbage\n")
        snapshot = source.sample()

        assert snapshot.memory_usage_percent == 75.0
        assert snapshot.cpu_usage_percent == 25.0

    @pytest.mark.runtime
    def test_missing_proc_reports_zero_before_first_success(self, tmp_path, clock) -> None:
        """With nothing ever read, failed values are reported as 0.0."""
        source = LinuxProcSampleSource(
            str(tmp_path), clock, proc_root=str(tmp_path / "missing")
        )

        snapshot = source.sample()

        assert snapshot.cpu_usage_percent == 0.0
        assert snapshot.memory_usage_percent == 0.0


class TestPsutilSources:
    """Tests for the psutil-backed sources."""

    @pytest.mark.runtime
    @pytest.mark.parametrize("source_cls", [PsutilSampleSource, ProcessSampleSource])
    def test_sample_within_range(self, source_cls, tmp_path, clock) -> None:
        snapshot = source_cls(str(tmp_path), clock).sample()

        assert 0.0 <= snapshot.cpu_usage_percent <= 100.0
        assert 0.0 < snapshot.memory_usage_percent <= 100.0
        assert 0.0 <= snapshot.storage_usage_percent <= 100.0
        assert snapshot.timestamp == clock.now

    @pytest.mark.runtime
    def test_storage_uses_configured_path(self, tmp_path, clock, monkeypatch) -> None:
        """Storage usage is read for the configured path."""
        seen: list[str] = []

        class Usage:
            percent = 33.3

        def fake_disk_usage(path: str) -> Usage:
            seen.append(path)
            return Usage()

        monkeypatch.setattr("insightops.adapters.sampling.psutil.disk_usage", fake_disk_usage)

        snapshot = PsutilSampleSource(str(tmp_path), clock).sample()

        assert seen == [str(tmp_path)]
        assert snapshot.storage_usage_percent == 33.3


class TestSelectSampleSource:
    """Tests for select_sample_source()."""

    @pytest.mark.runtime
    @pytest.mark.parametrize(
        ("platform", "expected"),
        [
            ("win32", PsutilSampleSource),
            ("darwin", PsutilSampleSource),
            ("freebsd14", PsutilSampleSource),
            ("sunos5", ProcessSampleSource),
        ],
    )
    def test_selects_by_platform(self, platform, expected) -> None:
        source = select_sample_source("/", platform=platform)

        assert isinstance(source, expected)
        assert isinstance(source, SampleSourcePort)

    @pytest.mark.runtime
    @pytest.mark.skipif(not Path("/proc/stat").exists(), reason="requires /proc")
    def test_linux_uses_proc(self) -> None:
        assert isinstance(select_sample_source("/", platform="linux"), LinuxProcSampleSource)


class TestBaseSampleSource:
    """Tests for the shared source base class."""

    @pytest.mark.runtime
    def test_source_without_memory_reader_cannot_be_built(self) -> None:
        class CpuOnlySource(_BaseSampleSource):
            def _cpu_usage(self) -> float | None:
                return 10.0

        with pytest.raises(TypeError):
            CpuOnlySource()

    @pytest.mark.runtime
    def test_complete_source_samples(self, tmp_path, clock) -> None:
        class FixedSource(_BaseSampleSource):
            def _cpu_usage(self) -> float | None:
                return 10.0

            def _memory_usage(self) -> float | None:
                return 20.0

        snapshot = FixedSource(storage_path=str(tmp_path), clock=clock).sample()

        assert snapshot.cpu_usage_percent == 10.0
        assert snapshot.memory_usage_percent == 20.0
