"""Tests for ProgressAggregator - percentage formula, monotonicity, throttling."""
import pytest

from batch_uploader.models import Batch, SessionStatus, TransferOutcome, UploadSessionResult
from batch_uploader.orchestrator.progress import ProgressAggregator

from fakes import FakeClock, RecordingSurface, make_files


def _aggregator(interval=0.25):
    surface = RecordingSurface()
    clock = FakeClock()
    aggregator = ProgressAggregator(surface, throttle_interval=interval, clock=clock)
    return aggregator, surface, clock


def _batches(count, batch_size):
    files = make_files(count)
    return [
        Batch(number=n, files=tuple(files[i:i + batch_size]))
        for n, i in enumerate(range(0, count, batch_size), 1)
    ]


def test_begin_publishes_immediately():
    aggregator, surface, _ = _aggregator()

    aggregator.begin("Uploading Files")

    assert surface.calls[0] == ("begin", "Uploading Files")
    assert surface.count("update") == 1
    assert surface.snapshots[0].percentage == 0.0


def test_throttles_bursts_at_fixed_time():
    aggregator, surface, clock = _aggregator()
    aggregator.begin("Uploading")
    aggregator.plan(1, 1)
    batch = _batches(1, 1)[0]
    aggregator.batch_started(batch)

    for i in range(1, 1001):
        aggregator.transfer_progress(1, 0, i / 1001, "f_000.txt")

    # Only the first update of the session got through
    assert surface.count("update") == 1

    clock.advance(0.25)
    aggregator.transfer_progress(1, 0, 0.9995, "f_000.txt")
    assert surface.count("update") == 2


def test_dropped_updates_are_not_replayed():
    aggregator, surface, clock = _aggregator()
    aggregator.begin("Uploading")
    aggregator.plan(10, 1)
    aggregator.scan_progress(3)
    aggregator.scan_progress(4)

    assert surface.count("update") == 1
    assert aggregator.snapshot.status_text == "Found 4 files"

    clock.advance(1.0)
    aggregator.scan_progress(12)

    assert surface.count("update") == 2
    assert surface.snapshots[-1].status_text == "Found 12 files"


def test_completion_always_flushed():
    aggregator, surface, _ = _aggregator()
    aggregator.begin("Uploading")
    aggregator.plan(2, 1)
    result = UploadSessionResult(2, 0, 2, "Uploaded 2 files successfully", SessionStatus.SUCCESS)

    aggregator.complete(result)

    last = surface.snapshots[-1]
    assert last.percentage == 100.0
    assert last.processed_count == 2
    assert last.status_text == "Uploaded 2 files successfully"


def test_percentage_formula_half_of_one_batch():
    aggregator, _, _ = _aggregator(interval=0)
    first, second = _batches(100, 50)
    aggregator.begin("Uploading")
    aggregator.plan(100, 2)
    aggregator.batch_started(first)
    aggregator.batch_started(second)

    for slot, descriptor in enumerate(first.files[:25]):
        aggregator.transfer_finished(1, slot, TransferOutcome.ok(descriptor))

    # 90 * (0 completed + 25/50 in flight) / 2
    assert aggregator.percentage == pytest.approx(22.5)
    assert aggregator.snapshot.processed_count == 25


def test_percentage_counts_partial_bytes():
    aggregator, _, _ = _aggregator(interval=0)
    first, second = _batches(100, 50)
    aggregator.begin("Uploading")
    aggregator.plan(100, 2)
    aggregator.batch_started(first)
    aggregator.batch_completed(first, 50, 0)
    aggregator.batch_started(second)

    assert aggregator.percentage == pytest.approx(45.0)

    aggregator.transfer_progress(2, 0, 0.5, "f_050.txt")
    assert aggregator.percentage == pytest.approx(45.0 + 90 * (0.5 / 50) / 2)


def test_percentage_never_decreases():
    aggregator, surface, _ = _aggregator(interval=0)
    batches = _batches(30, 10)
    aggregator.begin("Uploading")
    aggregator.plan(30, 3)

    for batch in batches:
        aggregator.batch_started(batch)
        for slot, descriptor in enumerate(batch.files):
            aggregator.transfer_progress(batch.number, slot, 0.7, descriptor.name)
            aggregator.transfer_progress(batch.number, slot, 0.3, descriptor.name)
            aggregator.transfer_finished(batch.number, slot, TransferOutcome.ok(descriptor))
        aggregator.batch_completed(batch, len(batch), 0)
    aggregator.finalizing()

    values = [s.percentage for s in surface.snapshots]
    assert values == sorted(values)
    assert values[-1] == 90.0
    assert max(values) <= 90.0


def test_broken_batch_still_counts_its_files():
    aggregator, _, _ = _aggregator(interval=0)
    batch = _batches(10, 10)[0]
    aggregator.begin("Uploading")
    aggregator.plan(10, 1)
    aggregator.batch_started(batch)
    aggregator.transfer_finished(1, 0, TransferOutcome.ok(batch.files[0]))

    aggregator.batch_completed(batch, 0, 10)

    assert aggregator.snapshot.processed_count == 10
    assert aggregator.percentage == pytest.approx(90.0)


def test_begin_resets_between_sessions():
    aggregator, surface, _ = _aggregator(interval=0)
    aggregator.begin("First")
    aggregator.plan(1, 1)
    aggregator.finalizing()
    assert aggregator.percentage == 90.0

    aggregator.begin("Second")

    assert aggregator.percentage == 0.0
    assert surface.snapshots[-1].percentage == 0.0
    assert surface.snapshots[-1].processed_count == 0


def test_mute_stops_surface_updates():
    aggregator, surface, _ = _aggregator(interval=0)
    aggregator.begin("Uploading")
    updates = surface.count("update")

    aggregator.mute()
    aggregator.plan(5, 1)
    aggregator.finalizing()

    assert aggregator.muted is True
    assert surface.count("update") == updates


def test_surface_errors_do_not_propagate():
    class BrokenSurface(RecordingSurface):
        def update(self, snapshot):
            raise RuntimeError("terminal went away")

    aggregator = ProgressAggregator(BrokenSurface(), throttle_interval=0)
    aggregator.begin("Uploading")
    aggregator.plan(1, 1)
    assert aggregator.snapshot.label == "Starting upload..."


def test_on_publish_callback():
    seen = []
    aggregator = ProgressAggregator(throttle_interval=0, on_publish=seen.append)
    aggregator.begin("Uploading")
    aggregator.scan_progress(2, "dir/a.txt")

    assert [s.label for s in seen] == ["Preparing files...", "Scanning: dir/a.txt"]
    assert seen[-1].status_text == "Found 2 files"
