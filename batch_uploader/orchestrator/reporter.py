"""Accumulation of transfer outcomes into the final session result."""
import logging
from typing import List, Optional

from ..models import SessionStatus, TransferOutcome, UploadSessionResult
from ..protocols import IListingCache

logger = logging.getLogger(__name__)


def pluralize(count: int, noun: str = "file") -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def summarize(successful: int, failed: int, total: int, cancelled: bool = False) -> str:
    """Human readable one-liner, e.g. 'Uploaded 42 files successfully, 3 failed'."""
    if total == 0:
        return "No files to upload"
    if successful == 0 and failed > 0 and not cancelled:
        return f"Upload failed: {pluralize(failed)} could not be uploaded"
    message = f"Uploaded {pluralize(successful)} successfully"
    if failed > 0:
        message += f", {failed} failed"
    if cancelled:
        message = f"Upload cancelled: {message[0].lower()}{message[1:]}"
    return message


def classify(successful: int, failed: int, total: int, cancelled: bool = False) -> SessionStatus:
    if cancelled:
        return SessionStatus.CANCELLED
    if total == 0:
        return SessionStatus.EMPTY
    if failed == 0:
        return SessionStatus.SUCCESS
    if successful == 0:
        return SessionStatus.FAILED
    return SessionStatus.PARTIAL


class ResultReporter:
    """
    Counts outcomes for one session and produces its UploadSessionResult.

    When the session finishes, the destination's cached listing is
    invalidated exactly once.
    """

    def __init__(self, listing_cache: Optional[IListingCache] = None):
        self._cache = listing_cache
        self._dest = "/"
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._failures: List[TransferOutcome] = []
        self._invalidated = False
        self._result: Optional[UploadSessionResult] = None

    @property
    def successful_count(self) -> int:
        return self._successful

    @property
    def failed_count(self) -> int:
        return self._failed

    @property
    def accounted(self) -> int:
        return self._successful + self._failed

    @property
    def result(self) -> Optional[UploadSessionResult]:
        return self._result

    def begin(self, dest: str, total_count: int) -> None:
        self._dest = dest
        self._total = total_count

    def record(self, outcome: TransferOutcome) -> None:
        if self._result is not None:
            logger.debug(f"Ignoring late outcome for {outcome.descriptor.relative_path}")
            return
        if outcome.success:
            self._successful += 1
        else:
            self._failed += 1
            self._failures.append(outcome)

    def finish(self, cancelled: bool = False) -> UploadSessionResult:
        """Build the result and invalidate the destination listing (once)."""
        if self._result is not None:
            return self._result

        if self.accounted != self._total:
            logger.error(
                f"Outcome count mismatch: {self.accounted} accounted, {self._total} expected"
            )

        status = classify(self._successful, self._failed, self._total, cancelled)
        self._result = UploadSessionResult(
            successful_count=self._successful,
            failed_count=self._failed,
            total_count=self._total,
            summary_message=summarize(self._successful, self._failed, self._total, cancelled),
            status=status,
            failures=tuple(self._failures),
        )

        if status == SessionStatus.FAILED:
            logger.error(self._result.summary_message)
        elif status in (SessionStatus.PARTIAL, SessionStatus.CANCELLED):
            logger.warning(self._result.summary_message)
        else:
            logger.info(self._result.summary_message)

        self._invalidate()
        return self._result

    def _invalidate(self) -> None:
        if self._invalidated or self._cache is None:
            return
        self._invalidated = True
        self._cache.invalidate(self._dest)
        logger.debug(f"Invalidated cached listing for {self._dest}")
