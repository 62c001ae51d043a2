"""
batch_uploader - Bounded-concurrency upload of dropped files and folders.

Folders are flattened into files with their relative paths, the files are
uploaded in batches (a few batches at a time, many transfers per batch),
progress is folded into one throttled percentage, and failures are counted
instead of aborting the whole upload.

Usage:
    from batch_uploader import UploadOrchestrator, UploadConfig

    async with UploadOrchestrator(api_url, config=UploadConfig(batch_size=50)) as uploader:
        session = uploader.upload_paths([Path("photos")], "/backup")
        session.on_transfer_fail(lambda outcome: print(f"Failed: {outcome.filename}"))
        result = await session.wait()
        print(result.summary_message)  # "Uploaded 42 files successfully, 3 failed"
"""
from .errors import BatchOrchestrationError, ScanError, TransferError, UploaderError
from .models import (
    Batch,
    FileDescriptor,
    ProgressSnapshot,
    SessionStatus,
    TransferErrorKind,
    TransferOutcome,
    UploadConfig,
    UploadSessionResult,
)
from .orchestrator import (
    DirectoryFlattener,
    ProgressAggregator,
    ResultReporter,
    UploadOrchestrator,
    UploadScheduler,
    UploadSession,
)
from .services import ListingCache, LocalEntry, TransferUnit

__version__ = "0.3.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadSession",
    # Core components
    "DirectoryFlattener",
    "UploadScheduler",
    "TransferUnit",
    "ProgressAggregator",
    "ResultReporter",
    # Models
    "Batch",
    "FileDescriptor",
    "ProgressSnapshot",
    "SessionStatus",
    "TransferErrorKind",
    "TransferOutcome",
    "UploadConfig",
    "UploadSessionResult",
    # Services
    "ListingCache",
    "LocalEntry",
    # Errors
    "UploaderError",
    "ScanError",
    "TransferError",
    "BatchOrchestrationError",
]
