"""Error taxonomy. None of these is fatal to a session."""
from typing import Optional

from .models import TransferErrorKind


class UploaderError(Exception):
    """Base class for batch_uploader errors."""


class ScanError(UploaderError):
    """A file or directory could not be read while flattening a drop."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class TransferError(UploaderError):
    """One file's transfer failed; always turned into a failed outcome."""

    def __init__(self, kind: TransferErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class BatchOrchestrationError(UploaderError):
    """Unexpected failure while running a batch; every file in it counts as failed."""

    def __init__(self, batch_number: int, cause: BaseException):
        super().__init__(f"Batch {batch_number} failed: {str(cause) or type(cause).__name__}")
        self.batch_number = batch_number
        self.cause = cause
