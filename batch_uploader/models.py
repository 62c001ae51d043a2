"""
Models for batch_uploader.

Immutable dataclasses describing files, batches, outcomes and progress.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class TransferErrorKind(Enum):
    """Why a single file transfer did not succeed."""
    NETWORK = "network"
    HTTP = "http"
    MALFORMED_RESPONSE = "malformed-response"
    REJECTED = "rejected"  # Body parsed fine but did not assert success
    SOURCE = "source"  # Local data could not be read
    BATCH = "batch"  # Batch orchestration broke, whole batch counted as failed
    CANCELLED = "cancelled"  # Never started, session was cancelled


class SessionStatus(Enum):
    """Terminal classification of an upload session."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    EMPTY = "empty"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FileDescriptor:
    """One file to upload, with its path relative to the drop root."""
    name: str
    relative_path: str
    byte_size: int
    data_handle: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.byte_size < 0:
            raise ValueError(f"byte_size must be >= 0, got {self.byte_size} for {self.relative_path}")


@dataclass(frozen=True)
class Batch:
    """Ordered group of files scheduled and progress-tracked together."""
    number: int  # 1-based
    files: Tuple[FileDescriptor, ...]

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class TransferOutcome:
    """Terminal result of one file's transfer."""
    descriptor: FileDescriptor
    success: bool
    error_kind: Optional[TransferErrorKind] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def filename(self) -> str:
        return self.descriptor.name

    @classmethod
    def ok(cls, descriptor: FileDescriptor, status_code: int = None):
        return cls(descriptor=descriptor, success=True, status_code=status_code)

    @classmethod
    def fail(
        cls,
        descriptor: FileDescriptor,
        error_kind: TransferErrorKind,
        error: str = None,
        status_code: int = None
    ):
        return cls(
            descriptor=descriptor,
            success=False,
            error_kind=error_kind,
            error=error,
            status_code=status_code
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    """What the progress surface shows at one point in time."""
    label: str
    percentage: float
    processed_count: int
    total_count: int
    status_text: str = ""

    def __post_init__(self):
        object.__setattr__(self, "percentage", min(max(float(self.percentage), 0.0), 100.0))


@dataclass(frozen=True)
class UploadSessionResult:
    """Final summary of an upload session."""
    successful_count: int
    failed_count: int
    total_count: int
    summary_message: str
    status: SessionStatus
    failures: Tuple[TransferOutcome, ...] = ()

    @property
    def success(self) -> bool:
        return self.status in (SessionStatus.SUCCESS, SessionStatus.EMPTY)

    @property
    def is_partial(self) -> bool:
        return self.status == SessionStatus.PARTIAL

    @property
    def all_success(self) -> bool:
        return self.failed_count == 0


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload sessions."""
    batch_size: int = 50
    max_concurrent_batches: int = 5
    max_concurrent_transfers_per_batch: int = 50
    throttle_interval: float = 0.25  # seconds between presentation updates
    upload_endpoint: str = "/api/files/upload"
    listing_endpoint: str = "/api/files"
    timeout: float = 60.0
    scan_page_size: int = 100

    def __post_init__(self):
        for name in (
            "batch_size",
            "max_concurrent_batches",
            "max_concurrent_transfers_per_batch",
            "scan_page_size",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if self.throttle_interval < 0:
            raise ValueError(f"throttle_interval must be >= 0, got {self.throttle_interval!r}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout!r}")

    @property
    def max_in_flight_transfers(self) -> int:
        """Upper bound of simultaneous transfers across all batches."""
        return self.max_concurrent_batches * self.max_concurrent_transfers_per_batch

    @classmethod
    def from_env(cls, **overrides) -> "UploadConfig":
        """
        Build config from UPLOADER_* environment variables.

        Keyword overrides that are not None win over the environment.
        """
        values = {}
        env_map = {
            "batch_size": ("UPLOADER_BATCH_SIZE", int),
            "max_concurrent_batches": ("UPLOADER_MAX_BATCHES", int),
            "max_concurrent_transfers_per_batch": ("UPLOADER_MAX_TRANSFERS", int),
            "timeout": ("UPLOADER_TIMEOUT", float),
        }
        for key, (env_name, cast) in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                try:
                    values[key] = cast(raw)
                except ValueError as exc:
                    raise ValueError(f"{env_name} is not a valid number: {raw!r}") from exc

        throttle_ms = os.getenv("UPLOADER_THROTTLE_MS")
        if throttle_ms:
            try:
                values["throttle_interval"] = int(throttle_ms) / 1000
            except ValueError as exc:
                raise ValueError(f"UPLOADER_THROTTLE_MS is not a valid number: {throttle_ms!r}") from exc

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
