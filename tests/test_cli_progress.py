"""Tests for console rendering of progress and results."""
import io

from rich.console import Console

from batch_uploader import cli_progress
from batch_uploader.cli_progress import ConsoleProgressSurface, FailureTimeline, render_result
from batch_uploader.models import (
    ProgressSnapshot,
    SessionStatus,
    TransferErrorKind,
    TransferOutcome,
    UploadSessionResult,
)

from fakes import make_files


def _console():
    buffer = io.StringIO()
    return Console(file=buffer, force_terminal=False, width=120), buffer


def test_surface_lifecycle():
    console, _ = _console()
    surface = ConsoleProgressSurface(console)

    surface.update(ProgressSnapshot("ignored before begin", 10, 0, 0))
    surface.begin("Uploading Files")
    assert surface.active is True

    surface.update(ProgressSnapshot("Batch 1: Uploading a.txt (50%)", 42.0, 3, 10, "Batch 1/2: 3/5 completed"))
    surface.end()

    assert surface.active is False
    surface.end()  # second end is a no-op


def test_surface_fail_prints_message(monkeypatch):
    console, buffer = _console()
    monkeypatch.setattr(cli_progress, "console", console)
    surface = ConsoleProgressSurface(console)

    surface.begin("Uploading Files")
    surface.fail("Upload failed: 3 files could not be uploaded")

    assert surface.active is False
    assert "Upload failed: 3 files could not be uploaded" in buffer.getvalue()


def test_render_result_lists_failures(monkeypatch):
    console, buffer = _console()
    monkeypatch.setattr(cli_progress, "console", console)
    files = make_files(3)
    failures = tuple(
        TransferOutcome.fail(descriptor, TransferErrorKind.HTTP, "HTTP 500", 500) for descriptor in files
    )
    result = UploadSessionResult(0, 3, 3, "Upload failed: 3 files could not be uploaded", SessionStatus.FAILED, failures)

    render_result(result, max_failures=2)

    output = buffer.getvalue()
    assert "Upload failed: 3 files could not be uploaded" in output
    assert "f_000.txt" in output
    assert "f_002.txt" not in output
    assert "and 1 more" in output


def test_failure_timeline(monkeypatch):
    console, buffer = _console()
    monkeypatch.setattr(cli_progress, "console", console)
    outcome = TransferOutcome.fail(make_files(1)[0], TransferErrorKind.NETWORK, "timed out")

    FailureTimeline().on_transfer_fail(outcome)

    line = buffer.getvalue()
    assert "FAIL" in line
    assert "f_000.txt" in line
    assert "network" in line
    assert "timed out" in line
