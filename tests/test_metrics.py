import math
import threading

import pytest

from labbench.metrics import MetricsCollector, OperationStats
from labbench.timing import TimingContext, TimingRecord


def test_mean_and_sample_stddev():
    """[1..5] has mean 3 and sample standard deviation sqrt(2.5)."""
    stats = OperationStats.from_durations("read", [1.0, 2.0, 3.0, 4.0, 5.0])

    assert stats.count == 5
    assert stats.mean_s == 3.0
    assert stats.std_s == pytest.approx(1.5811, abs=1e-4)
    assert stats.std_s == pytest.approx(math.sqrt(2.5))
    assert stats.min_s == 1.0
    assert stats.max_s == 5.0
    assert stats.total_s == 15.0


def test_stddev_uses_n_minus_one():
    durations = [0.5, 0.7, 0.9, 1.4]
    mean = sum(durations) / len(durations)
    expected = math.sqrt(sum((d - mean) ** 2 for d in durations) / (len(durations) - 1))

    stats = OperationStats.from_durations("transfer", durations)

    assert stats.mean_s == pytest.approx(mean)
    assert stats.std_s == pytest.approx(expected)


def test_identical_durations_have_zero_stddev():
    stats = OperationStats.from_durations("read", [2.0, 2.0])
    assert stats.std_s == 0.0


@pytest.mark.parametrize("durations", [[], [1.0]])
def test_fewer_than_two_durations_rejected(durations):
    with pytest.raises(ValueError, match="at least 2"):
        OperationStats.from_durations("read", durations)


def test_throughput():
    stats = OperationStats.from_durations("read", [1.0, 3.0])
    assert stats.throughput_mib_s(4 * 1024 * 1024) == pytest.approx(2.0)


def test_timing_context_records_on_success():
    collector = MetricsCollector()

    with TimingContext("read", file="a.mkv") as ctx:
        pass
    collector.record(ctx.record)

    assert ctx.record.duration_ns >= 0
    assert ctx.record.metadata == {"file": "a.mkv"}
    assert collector.get_records("read", "a.mkv") == [ctx.record]


def test_timing_context_records_nothing_on_error():
    with pytest.raises(RuntimeError):
        with TimingContext("read", file="a.mkv") as ctx:
            raise RuntimeError("disk on fire")

    assert ctx.record is None


def test_collector_keeps_pairs_separate():
    collector = MetricsCollector()
    for i, duration in enumerate([1, 2, 3]):
        collector.record(TimingRecord.from_duration("read", duration * 1_000_000_000, file="a", trial=i))
    for duration in [10, 20]:
        collector.record(TimingRecord.from_duration("read", duration * 1_000_000_000, file="b"))
    collector.record(TimingRecord.from_duration("transfer", 5_000_000_000, file="a"))

    assert collector.count("read", "a") == 3
    assert collector.count("read", "b") == 2
    assert collector.count("transfer", "a") == 1
    assert collector.compute_stats("read", "a").mean_s == pytest.approx(2.0)
    assert collector.compute_stats("read", "b").mean_s == pytest.approx(15.0)


def test_discard_drops_only_one_pair():
    collector = MetricsCollector()
    collector.record(TimingRecord.from_duration("read", 1, file="a"))
    collector.record(TimingRecord.from_duration("read", 1, file="a"))
    collector.record(TimingRecord.from_duration("read", 1, file="b"))

    assert collector.discard("read", "a") == 2
    assert collector.count("read", "a") == 0
    assert collector.count("read", "b") == 1


def test_concurrent_recording():
    collector = MetricsCollector()

    def record_many():
        for _ in range(100):
            collector.record(TimingRecord.from_duration("read", 1, file="a"))

    threads = [threading.Thread(target=record_many) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert collector.count("read", "a") == 1000
