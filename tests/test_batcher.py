"""Tests for the BatchAccumulator."""

import threading
import time

import pytest

from ddsend.batcher import Batch, BatchAccumulator
from ddsend.config import MAX_ARRAY_SIZE, MAX_CONTENT_BYTE_SIZE


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _make_accumulator(**kwargs):
    """Create a BatchAccumulator wired to a simple list-based collector."""
    flushed: list = []
    kwargs.setdefault("interval", 60.0)
    acc = BatchAccumulator(on_flush=flushed.append, **kwargs)
    return acc, flushed


def _non_empty(flushed):
    return [b for b in flushed if len(b)]


def _line(i: int) -> bytes:
    return b'{"seq":%d}\n' % i


# ------------------------------------------------------------------
# Tests
# ------------------------------------------------------------------

class TestBatch:

    def test_append_tracks_size(self):
        batch = Batch()
        batch.append(b"abc")
        batch.append(b"de")
        assert len(batch) == 2
        assert batch.size == 5
        assert not Batch()


class TestCountFlush:
    """Flushing triggered by the entry-count ceiling."""

    def test_501st_line_starts_new_batch(self):
        acc, flushed = _make_accumulator()

        for i in range(MAX_ARRAY_SIZE + 1):
            acc.add(_line(i))
        acc.wait_idle()

        assert len(flushed) == 1
        assert len(flushed[0]) == MAX_ARRAY_SIZE
        assert flushed[0].trigger == "count"
        assert flushed[0].lines[0] == b'{"seq":0},'
        assert flushed[0].lines[-1] == b'{"seq":499},'
        assert acc.pending_count == 1

        acc.close()
        assert flushed[-1].lines == [b'{"seq":500},']

    def test_500_lines_do_not_flush(self):
        acc, flushed = _make_accumulator()

        for i in range(MAX_ARRAY_SIZE):
            acc.add(_line(i))
        acc.wait_idle()

        assert flushed == []
        assert acc.pending_count == MAX_ARRAY_SIZE
        acc.close()

    def test_custom_entry_ceiling(self):
        acc, flushed = _make_accumulator(max_entries=3)

        for i in range(7):
            acc.add(_line(i))
        acc.wait_idle()

        assert [len(b) for b in flushed] == [3, 3]
        acc.close()


class TestSizeFlush:
    """Flushing triggered by the byte ceiling."""

    def test_line_reaching_ceiling_starts_next_batch(self):
        # Each prepared JSON line is 10 bytes: b'{"seq":N},'
        acc, flushed = _make_accumulator(max_bytes=30)

        for i in range(3):
            acc.add(_line(i))
        acc.wait_idle()

        # 10 + 10 + 10 reaches 30, so the third line goes to a new batch
        assert len(flushed) == 1
        assert flushed[0].trigger == "size"
        assert flushed[0].lines == [b'{"seq":0},', b'{"seq":1},']
        assert flushed[0].size == 20
        assert acc.pending_count == 1
        acc.close()

    def test_below_ceiling_does_not_flush(self):
        acc, flushed = _make_accumulator(max_bytes=31)

        for i in range(3):
            acc.add(_line(i))
        acc.wait_idle()

        assert flushed == []
        acc.close()

    def test_default_ceiling(self):
        acc, flushed = _make_accumulator(is_json=False)
        big = b"x" * (MAX_CONTENT_BYTE_SIZE // 2)

        acc.add(big)
        acc.add(big)
        acc.add(b"small")
        acc.wait_idle()

        assert len(flushed) == 1
        assert len(flushed[0]) == 1
        assert flushed[0].size == len(big) + 1
        acc.close()
        assert flushed[-1].lines == [big + b"\n", b"small\n"]

    def test_oversized_single_line_is_not_split(self):
        acc, flushed = _make_accumulator(max_bytes=10, is_json=False)

        acc.add(b"y" * 50)
        acc.close()

        batches = _non_empty(flushed)
        assert len(batches) == 1
        assert batches[0].lines == [b"y" * 50 + b"\n"]


class TestEmptyLines:

    @pytest.mark.parametrize("line", [b"", b"   ", b"\n", b" \t\n"])
    def test_blank_lines_are_discarded(self, line):
        acc, flushed = _make_accumulator(max_entries=1)

        acc.add(line)
        acc.add(line)
        acc.wait_idle()

        assert flushed == []
        assert acc.pending_count == 0
        assert acc.stats["discarded"] == 2
        acc.close()


class TestTimerFlush:
    """Flushing triggered by the interval."""

    def test_timer_flush_keeps_arrival_order(self):
        acc, flushed = _make_accumulator(interval=0.3, is_json=False)

        for i in range(5):
            acc.add(b"line-%d" % i)

        time.sleep(1.0)

        batches = _non_empty(flushed)
        assert len(batches) == 1
        assert batches[0].trigger == "timer"
        assert batches[0].lines == [b"line-%d\n" % i for i in range(5)]
        acc.close()

    def test_timer_flushes_empty_batches(self):
        acc, flushed = _make_accumulator(interval=0.1)

        time.sleep(0.55)

        assert len(flushed) >= 3
        assert all(len(b) == 0 for b in flushed)
        acc.close()

    def test_timer_fires_under_continuous_traffic(self):
        acc, flushed = _make_accumulator(interval=0.2, is_json=False)

        stop = time.monotonic() + 0.8
        while time.monotonic() < stop:
            acc.add(b"busy")
            time.sleep(0.001)

        assert any(b.trigger == "timer" for b in flushed)
        acc.close()

    def test_invalid_interval_uses_default(self):
        acc, _ = _make_accumulator(interval=0)
        assert acc.interval == 30.0
        acc.close()

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_interval_keeps_worker_alive(self, value):
        acc, flushed = _make_accumulator(interval=value, intake_size=2)
        assert acc.interval == 30.0

        results = [acc.add(_line(i)) for i in range(4)]
        acc.flush()
        acc.wait_idle()

        assert acc._thread.is_alive()
        assert results == [True] * 4
        assert len(flushed) == 1
        assert len(flushed[0]) == 4
        acc.close()


class TestManualFlushAndClose:

    def test_flush_sends_pending_lines(self):
        acc, flushed = _make_accumulator()

        acc.add(_line(1))
        acc.flush()
        acc.wait_idle()

        assert len(flushed) == 1
        assert flushed[0].trigger == "flush"
        assert flushed[0].lines == [b'{"seq":1},']
        acc.close()

    def test_close_flushes_remaining(self):
        acc, flushed = _make_accumulator()

        for i in range(4):
            acc.add(_line(i))
        acc.close()

        assert len(flushed) == 1
        assert flushed[0].trigger == "close"
        assert len(flushed[0]) == 4

    def test_close_is_idempotent(self):
        acc, flushed = _make_accumulator()
        acc.add(_line(0))
        acc.close()
        acc.close()
        assert len(_non_empty(flushed)) == 1

    def test_add_after_close_is_dropped(self):
        acc, flushed = _make_accumulator()
        acc.close()

        assert acc.add(_line(0)) is False
        assert acc.stats["dropped"] == 1

    def test_full_intake_drops_instead_of_blocking(self):
        release = threading.Event()

        def slow_flush(batch):
            release.wait(timeout=5.0)

        acc = BatchAccumulator(
            on_flush=slow_flush,
            interval=60.0,
            max_entries=1,
            intake_size=1,
            enqueue_timeout=0.05,
        )
        results = [acc.add(_line(i)) for i in range(5)]
        release.set()

        assert False in results
        assert acc.stats["dropped"] >= 1
        acc.close()

    def test_failing_callback_does_not_stop_worker(self):
        calls = []

        def on_flush(batch):
            calls.append(batch)
            if len(calls) == 1:
                raise RuntimeError("boom")

        acc = BatchAccumulator(on_flush=on_flush, interval=60.0)
        acc.add(_line(0))
        acc.flush()
        acc.add(_line(1))
        acc.flush()
        acc.wait_idle()

        assert len(calls) == 2
        assert calls[1].lines == [b'{"seq":1},']
        acc.close()


class TestConcurrentProducers:

    def test_every_line_arrives_once(self):
        acc, flushed = _make_accumulator(max_entries=50, is_json=False)

        def produce(worker):
            for i in range(200):
                acc.add(b"w%d-%d" % (worker, i))

        threads = [threading.Thread(target=produce, args=(w,)) for w in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        acc.close()

        lines = [line for b in flushed for line in b.lines]
        assert len(lines) == 800
        assert len(set(lines)) == 800
        assert all(len(b) <= 50 for b in flushed)

        # Per-producer order is preserved
        for w in range(4):
            own = [l for l in lines if l.startswith(b"w%d-" % w)]
            assert own == [b"w%d-%d\n" % (w, i) for i in range(200)]

    def test_close_racing_producers_leaves_nothing_behind(self):
        acc, flushed = _make_accumulator(max_entries=10, is_json=False)
        results = []
        start = threading.Event()

        def produce(worker):
            start.wait()
            for i in range(300):
                results.append(acc.add(b"w%d-%d" % (worker, i)))
                acc.flush()

        threads = [threading.Thread(target=produce, args=(w,)) for w in range(3)]
        for t in threads:
            t.start()
        start.set()
        time.sleep(0.01)
        acc.close()
        for t in threads:
            t.join()

        idle = threading.Thread(target=acc.wait_idle, daemon=True)
        idle.start()
        idle.join(timeout=2.0)
        assert not idle.is_alive()

        # Every accepted line was flushed, every rejected one counted as dropped
        lines = [line for b in flushed for line in b.lines]
        assert len(lines) == results.count(True)
        assert acc.stats["dropped"] == results.count(False)
