from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from ..errors import BatchOrchestrationError
from ..models import Batch, FileDescriptor, TransferErrorKind, TransferOutcome, UploadConfig
from ..services.transfer import TransferUnit
from ..utils.events import EventEmitter, TransferProgress
from .pool import partition, run_bounded
from .progress import ProgressAggregator
from .reporter import ResultReporter
logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """
    Mutable state of one upload session, shared by reference with every task.

    Only touched between suspension points of the single event loop, so no
    locking is needed.
    """
    cancelled: bool = False
    total_batches: int = 0
    batches_started: int = 0
    batches_completed: int = 0
    batches_in_flight: int = 0
    peak_batches_in_flight: int = 0
    transfers_in_flight: Dict[int, int] = field(default_factory=dict)
    peak_transfers_in_flight: Dict[int, int] = field(default_factory=dict)
    started_batch_numbers: List[int] = field(default_factory=list)

    def cancel(self) -> None:
        self.cancelled = True


class UploadScheduler:
    """
    Runs a flat file list as batches with two levels of bounded concurrency.

    - Files are split into batches of ``batch_size`` in original order
    - At most ``max_concurrent_batches`` batches run at once; batches start
      in FIFO order and may finish in any order
    - Inside a batch at most ``max_concurrent_transfers_per_batch``
      transfers run at once

    A batch that blows up outside of its transfers counts as entirely failed;
    the scheduler itself never raises for it.
    """

    def __init__(
        self,
        transfer_unit: TransferUnit,
        config: Optional[UploadConfig] = None,
        aggregator: Optional[ProgressAggregator] = None,
        reporter: Optional[ResultReporter] = None,
        events: Optional[EventEmitter] = None
    ):
        self._transfer_unit = transfer_unit
        self._config = config or UploadConfig()
        self._aggregator = aggregator or ProgressAggregator()
        self._reporter = reporter or ResultReporter()
        self._events = events or EventEmitter()

    @staticmethod
    def partition(files: Sequence[FileDescriptor], batch_size: int) -> List[Batch]:
        """Split files into numbered batches, keeping order."""
        return [
            Batch(number=index, files=tuple(chunk))
            for index, chunk in enumerate(partition(files, batch_size), 1)
        ]

    async def run(
        self,
        files: Sequence[FileDescriptor],
        dest: str,
        state: Optional[SessionState] = None
    ) -> SessionState:
        """
        Upload every file into dest. Each file's outcome goes to the reporter.

        Returns the session state (the one passed in, or a new one).
        """
        state = state or SessionState()
        batches = self.partition(files, self._config.batch_size)
        state.total_batches = len(batches)

        logger.info(
            f"Uploading {len(files)} files to {dest} in {len(batches)} batches "
            f"(max {self._config.max_concurrent_batches} batches x "
            f"{self._config.max_concurrent_transfers_per_batch} transfers)"
        )

        pool = await run_bounded(
            batches,
            self._config.max_concurrent_batches,
            lambda batch: self._run_batch(batch, dest, state),
            should_stop=lambda: state.cancelled,
        )

        for batch in pool.skipped:
            self._record_all(batch, TransferErrorKind.CANCELLED, "Session cancelled")

        logger.info(
            f"Scheduler done: {state.batches_completed}/{len(batches)} batches ran, "
            f"{len(pool.skipped)} never started"
        )
        return state

    async def _run_batch(self, batch: Batch, dest: str, state: SessionState) -> None:
        """Run one batch; exceptions become 'every file in the batch failed'."""
        state.batches_started += 1
        state.batches_in_flight += 1
        state.peak_batches_in_flight = max(state.peak_batches_in_flight, state.batches_in_flight)
        state.started_batch_numbers.append(batch.number)
        state.transfers_in_flight[batch.number] = 0
        state.peak_transfers_in_flight[batch.number] = 0

        logger.debug(f"Batch {batch.number}/{state.total_batches} started ({len(batch)} files)")

        try:
            self._aggregator.batch_started(batch)
            await self._events.emit("batch_start", batch)

            pool = await run_bounded(
                list(enumerate(batch.files)),
                self._config.max_concurrent_transfers_per_batch,
                lambda item: self._transfer(batch, item[0], item[1], dest, state),
                should_stop=lambda: state.cancelled,
            )
            outcomes: List[TransferOutcome] = list(pool.completed)
            outcomes.extend(
                TransferOutcome.fail(descriptor, TransferErrorKind.CANCELLED, "Session cancelled")
                for _, descriptor in pool.skipped
            )
        except Exception as e:
            error = BatchOrchestrationError(batch.number, e)
            logger.error(str(error), exc_info=True)
            outcomes = [
                TransferOutcome.fail(descriptor, TransferErrorKind.BATCH, str(error))
                for descriptor in batch.files
            ]
        finally:
            state.batches_in_flight -= 1

        state.batches_completed += 1
        try:
            successful, failed = self._record(outcomes)
            logger.info(
                f"Batch {batch.number}/{state.total_batches} completed: "
                f"{successful} successful, {failed} failed"
            )
            self._aggregator.batch_completed(batch, successful, failed)
            await self._events.emit("batch_complete", batch, successful, failed)
        except Exception as e:
            logger.error(f"Bookkeeping for batch {batch.number} failed: {e}", exc_info=True)

    async def _transfer(
        self,
        batch: Batch,
        slot: int,
        descriptor: FileDescriptor,
        dest: str,
        state: SessionState
    ) -> TransferOutcome:
        """Run one transfer inside a batch, tracking in-flight counts and progress."""
        in_flight = state.transfers_in_flight[batch.number] + 1
        state.transfers_in_flight[batch.number] = in_flight
        state.peak_transfers_in_flight[batch.number] = max(
            state.peak_transfers_in_flight[batch.number], in_flight
        )

        def on_progress(fraction: float) -> None:
            self._aggregator.transfer_progress(batch.number, slot, fraction, descriptor.name)
            self._events.emit_nowait(
                "transfer_progress",
                TransferProgress(descriptor.name, descriptor.relative_path, batch.number, fraction)
            )

        try:
            outcome = await self._transfer_unit.transfer(dest, descriptor, on_progress)
        finally:
            state.transfers_in_flight[batch.number] -= 1

        self._aggregator.transfer_finished(batch.number, slot, outcome)
        event = "transfer_complete" if outcome.success else "transfer_fail"
        await self._events.emit(event, outcome)
        return outcome

    def _record(self, outcomes: List[TransferOutcome]) -> Tuple[int, int]:
        successful = 0
        for outcome in outcomes:
            self._reporter.record(outcome)
            if outcome.success:
                successful += 1
        return successful, len(outcomes) - successful

    def _record_all(self, batch: Batch, kind: TransferErrorKind, error: str) -> None:
        self._record([TransferOutcome.fail(descriptor, kind, error) for descriptor in batch.files])
