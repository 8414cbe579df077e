"""Tests for the sequential and parallel drivers and the engine front."""

import threading

import numpy as np
import pytest

from blockmosaic.buffer import PixelBuffer
from blockmosaic.engine import (
    BlockTransformEngine,
    CallbackSink,
    CancelToken,
    CountingSink,
    Mode,
    WorkerFaultError,
    count_blocks,
    make_pacer,
    partition_rows,
    planned_blocks,
    run_parallel,
    run_sequential,
    transform,
    worker_count,
)
from blockmosaic.engine import parallel as parallel_mod
from blockmosaic.engine.blocks import iter_blocks
from blockmosaic.outcome import Status


def _random_buffer(w, h, seed=0):
    rng = np.random.default_rng(seed)
    return PixelBuffer(rng.integers(0, 256, (h, w, 3), dtype=np.uint8))


class RecordingSink:
    """Keeps every event in arrival order."""

    BLOCK = "block"
    FINISHED = "finished"

    def __init__(self):
        self._lock = threading.Lock()
        self.events = []

    def block_done(self):
        with self._lock:
            self.events.append(self.BLOCK)

    def finished(self):
        with self._lock:
            self.events.append(self.FINISHED)


def _reference(arr, s):
    """Straightforward per-block truncated mean over the whole image."""
    out = arr.copy()
    h, w, _ = arr.shape
    for y in range(0, h, s):
        for x in range(0, w, s):
            region = arr[y:y + s, x:x + s].astype(np.int64)
            avg = region.reshape(-1, 3).sum(axis=0) // region.shape[0] // region.shape[1]
            out[y:y + s, x:x + s] = avg
    return out


# ---------- partitioning ------------------------------------------------------


@pytest.mark.parametrize("h,n", [(1, 1), (10, 3), (64, 4), (7, 7), (100, 8), (5, 2)])
def test_partitions_tile_rows(h, n):
    parts = partition_rows(h, n)
    assert len(parts) == n
    assert parts[0].row_start == 0
    assert parts[-1].row_end == h
    for a, b in zip(parts, parts[1:]):
        assert a.row_end == b.row_start
    assert sum(p.rows for p in parts) == h


def test_last_partition_absorbs_remainder():
    parts = partition_rows(10, 3)
    assert [(p.row_start, p.row_end) for p in parts] == [(0, 3), (3, 6), (6, 10)]


def test_worker_count_bounds(monkeypatch):
    assert worker_count(100, 4) == 4
    assert worker_count(3, 16) == 3
    assert worker_count(10, 0) == 1
    monkeypatch.setattr(parallel_mod.os, "cpu_count", lambda: None)
    assert worker_count(10) == 1


# ---------- sequential --------------------------------------------------------


def test_sequential_matches_reference():
    buf = _random_buffer(13, 11)
    expected = _reference(buf.pixels, 4)
    run_sequential(buf, 4, CountingSink())
    assert np.array_equal(buf.pixels, expected)


def test_sequential_progress_count_and_order():
    buf = _random_buffer(10, 10)
    sink = RecordingSink()
    done = run_sequential(buf, 4, sink)
    assert done == 9
    assert sink.events == [RecordingSink.BLOCK] * 9 + [RecordingSink.FINISHED]


def test_counting_sink_keeps_only_totals():
    sink = CountingSink()
    run_sequential(PixelBuffer.solid(120, 120, (1, 2, 3)), 1, sink)
    assert sink.blocks == 14400
    assert sink.finishes == 1
    assert not any(isinstance(v, (list, tuple, dict)) for v in vars(sink).values())


def test_sequential_visits_blocks_row_major(monkeypatch):
    from blockmosaic.engine import sequential as seq_mod

    seen = []
    monkeypatch.setattr(seq_mod, "average_block", lambda buf, b: seen.append((b.y_start, b.x_start)))
    run_sequential(PixelBuffer.solid(6, 4, (0, 0, 0)), 2, CountingSink())
    assert seen == [(0, 0), (0, 2), (0, 4), (2, 0), (2, 2), (2, 4)]


def test_solid_red_is_unchanged():
    buf = PixelBuffer.solid(8, 8, (255, 0, 0))
    sink = CountingSink()
    result = BlockTransformEngine(4).run(buf, Mode.SEQUENTIAL, sink)
    assert result.ok
    assert result.blocks == 4
    assert np.all(buf.pixels == np.array([255, 0, 0], dtype=np.uint8))
    assert sink.blocks == 4
    assert sink.finishes == 1


# ---------- parallel ----------------------------------------------------------


@pytest.mark.parametrize("w,h,s,n", [(64, 64, 8, 4), (33, 48, 4, 3), (20, 30, 5, 2), (9, 9, 9, 1)])
def test_parallel_equals_sequential_when_seams_align(w, h, s, n):
    assert (h // n) % s == 0
    seq = _random_buffer(w, h, seed=1)
    par = seq.copy()

    run_sequential(seq, s, CountingSink())
    run_parallel(par, s, CountingSink(), workers=n)

    assert seq.tobytes() == par.tobytes()


def test_parallel_clamps_blocks_at_partition_seams():
    """10 rows, 2 workers, square 4: each partition is 5 rows, so blocks split 4+1."""
    buf = _random_buffer(4, 10, seed=2)
    original = buf.pixels.copy()
    sink = CountingSink()
    done = run_parallel(buf, 4, sink, workers=2)

    assert done == 4
    assert sink.blocks == 4
    assert sink.finishes == 1
    expected = original.copy()
    for y0, y1 in [(0, 4), (4, 5), (5, 9), (9, 10)]:
        region = original[y0:y1].astype(np.int64)
        expected[y0:y1] = region.reshape(-1, 3).sum(axis=0) // region.shape[0] // region.shape[1]
    assert np.array_equal(buf.pixels, expected)


@pytest.mark.parametrize("w,h,s,n", [(17, 23, 4, 3), (10, 10, 3, 4), (5, 40, 7, 6)])
def test_parallel_blocks_stay_inside_partitions(w, h, s, n):
    hits = np.zeros((h, w), dtype=np.int32)
    for part in partition_rows(h, n):
        for b in iter_blocks(w, part.row_start, part.row_end, s):
            assert part.row_start <= b.y_start < b.y_end <= part.row_end
            hits[b.y_start:b.y_end, b.x_start:b.x_end] += 1
    assert np.all(hits == 1)


def test_parallel_progress_counts():
    buf = _random_buffer(12, 40)
    sink = RecordingSink()
    done = run_parallel(buf, 4, sink, workers=4)
    expected = sum(count_blocks(12, p.rows, 4) for p in partition_rows(40, 4))
    assert done == expected
    assert sink.events.count(RecordingSink.BLOCK) == expected
    assert sink.events[-1] == RecordingSink.FINISHED
    assert sink.events.count(RecordingSink.FINISHED) == 1


def test_parallel_notifies_from_worker_threads():
    names = set()
    lock = threading.Lock()

    def _record():
        with lock:
            names.add(threading.current_thread().name)

    run_parallel(_random_buffer(8, 32), 4, CallbackSink(_record), workers=4)
    assert any(n.startswith("mosaic") for n in names)


def test_worker_fault_collected_after_join(monkeypatch):
    calls = []
    real = parallel_mod.average_block

    def flaky(buf, block):
        calls.append(block)
        if block.y_start == 0 and block.x_start == 0:
            raise RuntimeError("boom")
        real(buf, block)

    monkeypatch.setattr(parallel_mod, "average_block", flaky)
    buf = _random_buffer(8, 16)
    sink = CountingSink()
    with pytest.raises(WorkerFaultError) as info:
        run_parallel(buf, 4, sink, workers=2)

    assert len(info.value.errors) == 1
    assert isinstance(info.value.errors[0], RuntimeError)
    # The healthy worker still covered its whole partition.
    assert sum(1 for b in calls if b.y_start >= 8) == 4
    assert sink.finishes == 1


def test_engine_reports_fault_instead_of_raising(monkeypatch):
    def broken(buf, block):
        raise RuntimeError("bad block")

    monkeypatch.setattr(parallel_mod, "average_block", broken)
    result = BlockTransformEngine(2, workers=2).run(_random_buffer(4, 4), Mode.PARALLEL, CountingSink())
    assert result.status is Status.TRANSFORM_FAULT
    assert isinstance(result.error, WorkerFaultError)


# ---------- cancellation and pacing -------------------------------------------


def test_cancel_before_start_processes_nothing():
    token = CancelToken()
    token.cancel()
    buf = _random_buffer(8, 8)
    before = buf.tobytes()
    sink = CountingSink()
    result = BlockTransformEngine(2).run(buf, Mode.SEQUENTIAL, sink, token)
    assert result.status is Status.CANCELLED
    assert result.blocks == 0
    assert buf.tobytes() == before
    assert sink.finishes == 1


@pytest.mark.parametrize("mode", [Mode.SEQUENTIAL, Mode.PARALLEL])
def test_cancel_mid_transform_stops_workers(mode):
    token = CancelToken()
    sink = CountingSink()

    class CancelAfterThree(CountingSink):
        def block_done(self):
            sink.block_done()
            if sink.blocks >= 3:
                token.cancel()

        def finished(self):
            sink.finished()

    buf = _random_buffer(16, 16)
    engine = BlockTransformEngine(2, workers=2)
    result = engine.run(buf, mode, CancelAfterThree(), token)

    assert result.status is Status.CANCELLED
    assert result.blocks < count_blocks(16, 16, 2)
    assert sink.finishes == 1


@pytest.mark.parametrize("mode", [Mode.SEQUENTIAL, Mode.PARALLEL])
def test_cancel_after_last_block_still_succeeds(mode):
    token = CancelToken()

    class CancelOnFinish(CountingSink):
        def finished(self):
            super().finished()
            token.cancel()

    buf = PixelBuffer.solid(10, 10, (4, 5, 6))
    result = BlockTransformEngine(4, workers=2).run(buf, mode, CancelOnFinish(), token)

    assert token.cancelled
    assert result.status is Status.SUCCESS


def test_planned_blocks_counts_seam_splits():
    assert planned_blocks(4, 10, 4, workers=2) == 4
    assert planned_blocks(10, 10, 4, workers=1) == count_blocks(10, 10, 4)


def test_pacer_disabled_for_zero_delay():
    assert make_pacer(0) is None
    with pytest.raises(ValueError):
        make_pacer(-1)


def test_pacer_wakes_on_cancel():
    token = CancelToken()
    token.cancel()
    pace = make_pacer(60.0, token)
    pace()  # returns immediately because the token is already set


def test_paced_run_calls_hook_per_block():
    ticks = []
    run_sequential(PixelBuffer.solid(4, 4, (0, 0, 0)), 2, CountingSink(), pace=lambda: ticks.append(1))
    assert len(ticks) == 4


# ---------- engine front -------------------------------------------------------


def test_mode_parse_is_case_insensitive():
    assert Mode.parse("s") is Mode.SEQUENTIAL
    assert Mode.parse("M") is Mode.PARALLEL
    with pytest.raises(ValueError):
        Mode.parse("x")


def test_engine_validates_arguments():
    with pytest.raises(ValueError):
        BlockTransformEngine(0)
    with pytest.raises(ValueError):
        BlockTransformEngine(4, delay=-0.1)
    with pytest.raises(ValueError):
        BlockTransformEngine(4, workers=0)


def test_transform_helper():
    buf = PixelBuffer.solid(5, 5, (10, 20, 30))
    result = transform(buf, 2, Mode.PARALLEL)
    assert result.ok
    assert buf.sample(4, 4) == (10, 20, 30)


def test_engine_does_not_keep_buffer():
    engine = BlockTransformEngine(2)
    engine.run(_random_buffer(4, 4), Mode.SEQUENTIAL)
    assert not any(isinstance(v, PixelBuffer) for v in vars(engine).values())
