from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence
from batch_uploader.models import (
    Batch,
    FileDescriptor,
    ProgressSnapshot,
    SessionStatus,
    TransferOutcome,
    UploadConfig,
    UploadSessionResult,
)
from batch_uploader.protocols import IEntry, IListingCache, IProgressSurface
from batch_uploader.services.transfer import TransferUnit
from batch_uploader.utils.events import EventEmitter, TransferProgress
from .flattener import DirectoryFlattener
from .progress import ProgressAggregator
from .reporter import ResultReporter
from .scheduler import SessionState, UploadScheduler
import asyncio
import logging
import time
logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """State of an upload session."""
    PENDING = "pending"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadSession:
    """
    One end-to-end upload, from a drop or selection to the final summary.

    Usage:
        session = orchestrator.upload_entries(entries, "/photos")

        session.on_transfer_complete(lambda outcome: print(f"Done: {outcome.filename}"))
        session.on_transfer_fail(lambda outcome: print(f"Failed: {outcome.filename}"))
        session.on_progress(lambda snapshot: print(f"{snapshot.percentage:.0f}%"))

        result = await session.wait()  # wait() starts automatically if needed
        print(result.summary_message)

    Cancelling stops new batches and transfers from starting. Transfers
    already on the wire finish; the session still resolves with a result
    whose status is CANCELLED.
    """

    def __init__(
        self,
        transfer_unit: TransferUnit,
        dest: str,
        entries: Optional[Iterable[IEntry]] = None,
        files: Optional[Sequence[FileDescriptor]] = None,
        config: Optional[UploadConfig] = None,
        surface: Optional[IProgressSurface] = None,
        listing_cache: Optional[IListingCache] = None,
        title: str = "Uploading Files",
        clock: Callable[[], float] = time.monotonic,
    ):
        if entries is None and files is None:
            raise ValueError("Either entries or files must be provided")

        self._dest = dest
        self._entries = list(entries) if entries is not None else None
        self._files = list(files) if files is not None else None
        self._config = config or UploadConfig()
        self._surface = surface
        self._title = title

        self._events = EventEmitter()
        self._session_state = SessionState()
        self._aggregator = ProgressAggregator(
            surface,
            throttle_interval=self._config.throttle_interval,
            clock=clock,
            on_publish=self._on_snapshot,
        )
        self._reporter = ResultReporter(listing_cache)
        self._scheduler = UploadScheduler(
            transfer_unit,
            self._config,
            aggregator=self._aggregator,
            reporter=self._reporter,
            events=self._events,
        )

        self._state = ProcessState.PENDING
        self._task: Optional[asyncio.Task] = None
        self._result: Optional[UploadSessionResult] = None
        self._error: Optional[Exception] = None
        self._total = 0

    # Event subscription methods
    def on_start(self, callback: Callable[[], None]):
        """Called when the session starts."""
        self._events.on("start", callback)

    def on_scan_progress(self, callback: Callable[[int, FileDescriptor], None]):
        """Called for each file found while scanning. Receives (count, FileDescriptor)."""
        self._events.on("scan_progress", callback)

    def on_batch_start(self, callback: Callable[[Batch], None]):
        """Called when a batch starts. Receives Batch."""
        self._events.on("batch_start", callback)

    def on_batch_complete(self, callback: Callable[[Batch, int, int], None]):
        """Called when a batch resolves. Receives (Batch, successful, failed)."""
        self._events.on("batch_complete", callback)

    def on_transfer_progress(self, callback: Callable[[TransferProgress], None]):
        """Called as bytes of a file are sent. Receives TransferProgress."""
        self._events.on("transfer_progress", callback)

    def on_transfer_complete(self, callback: Callable[[TransferOutcome], None]):
        """Called when a file uploads successfully. Receives TransferOutcome."""
        self._events.on("transfer_complete", callback)

    def on_transfer_fail(self, callback: Callable[[TransferOutcome], None]):
        """Called when a file fails. Receives TransferOutcome."""
        self._events.on("transfer_fail", callback)

    def on_progress(self, callback: Callable[[ProgressSnapshot], None]):
        """Called with every (throttled) ProgressSnapshot."""
        self._events.on("progress", callback)

    def on_finish(self, callback: Callable[[UploadSessionResult], None]):
        """Called when the session completes. Receives UploadSessionResult."""
        self._events.on("finish", callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called when the session itself fails unexpectedly. Receives Exception."""
        self._events.on("error", callback)

    # Control methods
    async def start(self):
        """Start the session (non-blocking)."""
        if self._state != ProcessState.PENDING:
            raise RuntimeError(f"Cannot start session in state: {self._state}")

        self._state = ProcessState.RUNNING
        self._task = asyncio.create_task(self._run())
        await self._events.emit("start")

    async def cancel(self):
        """
        Stop scheduling new work.

        In-flight transfers are left to finish; the progress surface is
        closed right away and receives nothing further.
        """
        if self._state in (ProcessState.COMPLETED, ProcessState.CANCELLED, ProcessState.FAILED):
            return

        logger.info("Upload session cancelled by user")
        self._session_state.cancel()
        self._state = ProcessState.CANCELLED
        self._aggregator.mute()
        self._notify_surface("end")

    async def wait(self) -> UploadSessionResult:
        """Wait for the session to finish and return its result."""
        if self._state == ProcessState.PENDING:
            await self.start()

        if self._task:
            await self._task

        if self._result is None:
            # Cancelled before it ever started
            self._result = UploadSessionResult(
                successful_count=0,
                failed_count=0,
                total_count=0,
                summary_message="Upload cancelled",
                status=SessionStatus.CANCELLED,
            )

        return self._result

    # State properties
    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def session_state(self) -> SessionState:
        """Scheduler counters (in-flight batches and transfers, peaks)."""
        return self._session_state

    @property
    def snapshot(self) -> ProgressSnapshot:
        """Latest progress snapshot, throttled or not."""
        return self._aggregator.snapshot

    @property
    def result(self) -> Optional[UploadSessionResult]:
        return self._result

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def is_running(self) -> bool:
        return self._state == ProcessState.RUNNING

    @property
    def is_completed(self) -> bool:
        return self._state == ProcessState.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self._state == ProcessState.CANCELLED

    # Internal methods
    async def _collect(self) -> List[FileDescriptor]:
        if self._files is not None:
            return self._files

        def on_found(count: int, descriptor: FileDescriptor) -> None:
            self._aggregator.scan_progress(count, descriptor.relative_path)
            self._events.emit_nowait("scan_progress", count, descriptor)

        flattener = DirectoryFlattener(on_found=on_found)
        self._aggregator.scan_progress(0)
        return await flattener.flatten(self._entries)

    async def _run(self):
        """Scan, schedule, report."""
        try:
            self._aggregator.begin(self._title)

            files = await self._collect()
            self._total = len(files)
            self._reporter.begin(self._dest, self._total)

            if files:
                batch_size = self._config.batch_size
                self._aggregator.plan(self._total, (self._total + batch_size - 1) // batch_size)
                await self._scheduler.run(files, self._dest, self._session_state)
                self._aggregator.finalizing()
            else:
                logger.info("No files found to upload")

            self._result = self._reporter.finish(cancelled=self._session_state.cancelled)
            self._aggregator.complete(self._result)

            if self._session_state.cancelled:
                self._state = ProcessState.CANCELLED
                return

            self._state = ProcessState.COMPLETED
            if self._result.status == SessionStatus.FAILED:
                self._notify_surface("fail", self._result.summary_message)
            else:
                self._notify_surface("end")
            await self._events.emit("finish", self._result)

        except asyncio.CancelledError:
            self._state = ProcessState.CANCELLED
            raise
        except Exception as e:
            self._state = ProcessState.FAILED
            self._error = e
            logger.error(f"Upload session failed: {e}", exc_info=True)
            await self._events.emit("error", e)

            successful = self._reporter.successful_count
            self._result = UploadSessionResult(
                successful_count=successful,
                failed_count=self._total - successful,
                total_count=self._total,
                summary_message=f"Upload failed: {e}",
                status=SessionStatus.FAILED,
            )
            self._notify_surface("fail", self._result.summary_message)

    def _on_snapshot(self, snapshot: ProgressSnapshot) -> None:
        self._events.emit_nowait("progress", snapshot)

    def _notify_surface(self, method: str, *args) -> None:
        if self._surface is None:
            return
        try:
            getattr(self._surface, method)(*args)
        except Exception as e:
            logger.error(f"Progress surface {method}() failed: {e}")
