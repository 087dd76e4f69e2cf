"""Tests for CPU and memory sampling."""

import pytest

from agentwatch.detection.introspection import IntrospectionError
from agentwatch.detection.sampler import BYTES_PER_MB, ResourceSampler

from conftest import FakeIntrospection, FakeProcess


@pytest.fixture
def sampler(fake_introspection):
    return ResourceSampler(fake_introspection, clock=lambda: 0.0, core_count=4)


class TestRecord:
    """Tests for ResourceSampler.record."""

    def test_first_reading_is_zero(self, sampler):
        sample = sampler.record(1, cpu_seconds=10.0, rss_bytes=0, timestamp=100.0)
        assert sample.cpu_percent == 0.0
        assert sampler.has_reading(1)

    def test_half_a_core(self, sampler):
        """0.5s of CPU over 1s of wall time is 50%."""
        sampler.record(1, cpu_seconds=10.0, rss_bytes=0, timestamp=100.0)
        sample = sampler.record(1, cpu_seconds=10.5, rss_bytes=0, timestamp=101.0)
        assert sample.cpu_percent == pytest.approx(50.0)

    def test_multiple_cores(self, sampler):
        sampler.record(1, cpu_seconds=0.0, rss_bytes=0, timestamp=0.0)
        sample = sampler.record(1, cpu_seconds=3.0, rss_bytes=0, timestamp=1.0)
        assert sample.cpu_percent == pytest.approx(300.0)

    def test_clamped_to_core_count(self, sampler):
        sampler.record(1, cpu_seconds=0.0, rss_bytes=0, timestamp=0.0)
        sample = sampler.record(1, cpu_seconds=100.0, rss_bytes=0, timestamp=1.0)
        assert sample.cpu_percent == 400.0

    def test_counter_regression_is_zero(self, sampler):
        sampler.record(1, cpu_seconds=10.0, rss_bytes=0, timestamp=0.0)
        sample = sampler.record(1, cpu_seconds=5.0, rss_bytes=0, timestamp=1.0)
        assert sample.cpu_percent == 0.0

    @pytest.mark.parametrize('second_timestamp', [5.0, 4.0])
    def test_non_positive_elapsed_is_zero(self, sampler, second_timestamp):
        sampler.record(1, cpu_seconds=0.0, rss_bytes=0, timestamp=5.0)
        sample = sampler.record(1, cpu_seconds=1.0, rss_bytes=0, timestamp=second_timestamp)
        assert sample.cpu_percent == 0.0

    def test_memory_in_mb(self, sampler):
        sample = sampler.record(1, cpu_seconds=0.0, rss_bytes=256 * BYTES_PER_MB)
        assert sample.memory_mb == 256.0

    def test_uses_clock(self, fake_introspection):
        now = [100.0]
        sampler = ResourceSampler(fake_introspection, clock=lambda: now[0], core_count=1)

        sampler.record(1, cpu_seconds=0.0, rss_bytes=0)
        now[0] = 102.0
        sample = sampler.record(1, cpu_seconds=1.0, rss_bytes=0)

        assert sample.cpu_percent == pytest.approx(50.0)
        assert sample.timestamp == 102.0


class TestSample:
    """Tests for sampling through introspection."""

    def test_sample_reads_process(self):
        introspection = FakeIntrospection({7: FakeProcess(name='claude', cpu_seconds=2.0)})
        now = [0.0]
        sampler = ResourceSampler(introspection, clock=lambda: now[0], core_count=2)

        assert sampler.sample(7).cpu_percent == 0.0
        introspection.processes[7].cpu_seconds = 2.25
        now[0] = 0.5
        sample = sampler.sample(7)

        assert sample.cpu_percent == pytest.approx(50.0)
        assert sample.memory_mb == 100.0

    def test_sample_missing_process_raises(self, sampler):
        with pytest.raises(IntrospectionError):
            sampler.sample(999)

    def test_collect_skips_failures(self):
        introspection = FakeIntrospection({1: FakeProcess(name='claude'), 2: FakeProcess(name='claude')})
        introspection.denied.add(3)
        sampler = ResourceSampler(introspection, core_count=1)

        samples = sampler.collect([1, 2, 3, 4])

        assert set(samples) == {1, 2}

    def test_core_count_from_introspection(self):
        sampler = ResourceSampler(FakeIntrospection(cores=8))
        assert sampler.max_percent == 800.0


class TestCleanup:
    """Tests for ResourceSampler.cleanup."""

    def test_drops_vanished_pids(self, sampler):
        for pid in (1, 2, 3):
            sampler.record(pid, cpu_seconds=0.0, rss_bytes=0)

        sampler.cleanup([2])

        assert len(sampler) == 1
        assert sampler.has_reading(2)
        assert not sampler.has_reading(1)

    def test_cleanup_resets_rate(self, sampler):
        """A PID that reappears after cleanup starts over at 0%."""
        sampler.record(1, cpu_seconds=0.0, rss_bytes=0, timestamp=0.0)
        sampler.cleanup([])
        sample = sampler.record(1, cpu_seconds=5.0, rss_bytes=0, timestamp=1.0)
        assert sample.cpu_percent == 0.0
