"""Folding of scan, batch and byte progress into one throttled snapshot."""
import logging
import time
from typing import Callable, Dict, Optional

from ..models import Batch, ProgressSnapshot, TransferOutcome, UploadSessionResult
from ..protocols import IProgressSurface

logger = logging.getLogger(__name__)

# Transfers fill [0, TRANSFER_SPAN]; the rest is reserved for finalization.
TRANSFER_SPAN = 90.0
COMPLETE = 100.0


class ProgressAggregator:
    """
    Turns progress events from every part of a session into ProgressSnapshots.

    Percentage never goes down within a session. Presentation updates are
    rate-limited to one per ``throttle_interval`` seconds, except the first
    update of a session and any update at 100%, which always go through.
    Rate-limited updates are dropped, not queued.
    """

    def __init__(
        self,
        surface: Optional[IProgressSurface] = None,
        throttle_interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
        on_publish: Optional[Callable[[ProgressSnapshot], None]] = None,
    ):
        self._surface = surface
        self._interval = throttle_interval
        self._clock = clock
        self._on_publish = on_publish
        self._reset()

    def _reset(self) -> None:
        self._snapshot = ProgressSnapshot("", 0.0, 0, 0, "")
        self._first = True
        self._last_emit: Optional[float] = None
        self._muted = False
        self._total_files = 0
        self._total_batches = 0
        self._completed_batches = 0
        self._processed = 0
        self._batch_sizes: Dict[int, int] = {}
        self._batch_done: Dict[int, int] = {}
        self._file_fractions: Dict[int, Dict[int, float]] = {}

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    @property
    def percentage(self) -> float:
        return self._snapshot.percentage

    @property
    def muted(self) -> bool:
        return self._muted

    # Session lifecycle

    def begin(self, title: str) -> None:
        """Start a new session: percentage goes back to 0 and the next update is flushed."""
        self._reset()
        if self._surface is not None:
            self._surface.begin(title)
        self._publish("Preparing files...", 0.0, "Initializing...")

    def mute(self) -> None:
        """Stop forwarding anything to the surface (session was cancelled)."""
        self._muted = True

    def scan_progress(self, found: int, current: str = "") -> None:
        label = f"Scanning: {current}" if current else "Analyzing dropped items..."
        self._total_files = max(self._total_files, found)
        self._publish(label, self._snapshot.percentage, f"Found {found} files")

    def plan(self, total_files: int, total_batches: int) -> None:
        self._total_files = total_files
        self._total_batches = total_batches
        self._publish(
            "Starting upload...",
            self._snapshot.percentage,
            f"Found {total_files} files to upload in {total_batches} batches"
        )

    # Upload progress

    def batch_started(self, batch: Batch) -> None:
        self._batch_sizes[batch.number] = len(batch)
        self._batch_done[batch.number] = 0
        self._file_fractions[batch.number] = {}
        self._publish(
            f"Starting batch {batch.number}/{self._total_batches}...",
            self._transfer_percentage(),
            f"Batch {batch.number}/{self._total_batches}: {len(batch)} files"
        )

    def transfer_progress(self, batch_number: int, slot: int, fraction: float, name: str = "") -> None:
        fractions = self._file_fractions.get(batch_number)
        if fractions is None:
            return
        fraction = min(max(fraction, 0.0), 1.0)
        if fraction <= fractions.get(slot, 0.0):
            return
        fractions[slot] = fraction
        done = self._batch_done.get(batch_number, 0)
        size = self._batch_sizes.get(batch_number, 0)
        self._publish(
            f"Batch {batch_number}: Uploading {name} ({round(fraction * 100)}%)",
            self._transfer_percentage(),
            f"Batch {batch_number}/{self._total_batches}: {done}/{size} completed"
        )

    def transfer_finished(self, batch_number: int, slot: int, outcome: TransferOutcome) -> None:
        fractions = self._file_fractions.get(batch_number)
        if fractions is None:
            return
        fractions.pop(slot, None)
        self._batch_done[batch_number] += 1
        self._processed = min(self._processed + 1, self._total_files)
        mark = "✓" if outcome.success else "✗"
        self._publish(
            f"{mark} {outcome.descriptor.relative_path}",
            self._transfer_percentage(),
            f"Batch {batch_number}/{self._total_batches}: "
            f"{self._batch_done[batch_number]}/{self._batch_sizes[batch_number]} completed"
        )

    def batch_completed(self, batch: Batch, successful: int, failed: int) -> None:
        done = self._batch_done.pop(batch.number, 0)
        self._batch_sizes.pop(batch.number, None)
        self._file_fractions.pop(batch.number, None)
        # Files the batch never reported (orchestration failure) still count as processed
        self._processed = min(self._processed + (len(batch) - done), self._total_files)
        self._completed_batches += 1
        self._publish(
            f"Batch {batch.number} completed",
            self._transfer_percentage(),
            f"Batch {batch.number} completed: {successful} successful, {failed} failed"
        )

    def finalizing(self) -> None:
        self._publish("Finalizing...", TRANSFER_SPAN, "Collecting results")

    def complete(self, result: UploadSessionResult) -> None:
        label = "Upload complete!" if result.failed_count == 0 else "Upload finished with errors"
        self._publish(label, COMPLETE, result.summary_message, processed=result.total_count)

    # Internals

    def _transfer_percentage(self) -> float:
        if self._total_batches <= 0:
            return self._snapshot.percentage
        in_flight = 0.0
        for number, size in self._batch_sizes.items():
            if size <= 0:
                continue
            partial = self._batch_done[number] + sum(self._file_fractions[number].values())
            in_flight += min(partial / size, 1.0)
        return (self._completed_batches + in_flight) / self._total_batches * TRANSFER_SPAN

    def _publish(self, label: str, percentage: float, status: str, processed: Optional[int] = None) -> None:
        snapshot = ProgressSnapshot(
            label=label,
            percentage=max(percentage, self._snapshot.percentage),
            processed_count=self._processed if processed is None else processed,
            total_count=self._total_files,
            status_text=status,
        )
        self._snapshot = snapshot

        if self._muted:
            return

        now = self._clock()
        due = self._last_emit is None or now - self._last_emit >= self._interval
        if not (self._first or snapshot.percentage >= COMPLETE or due):
            return

        self._first = False
        self._last_emit = now
        try:
            if self._surface is not None:
                self._surface.update(snapshot)
            if self._on_publish is not None:
                self._on_publish(snapshot)
        except Exception as e:
            logger.error(f"Error publishing progress: {e}")
