"""Orchestrator package - flattening, scheduling, progress and reporting of upload sessions."""
from .core import UploadOrchestrator
from .flattener import DirectoryFlattener
from .progress import ProgressAggregator
from .reporter import ResultReporter
from .scheduler import SessionState, UploadScheduler
from .session import ProcessState, UploadSession

__all__ = [
    "UploadOrchestrator",
    "DirectoryFlattener",
    "ProgressAggregator",
    "ResultReporter",
    "SessionState",
    "UploadScheduler",
    "ProcessState",
    "UploadSession",
]
