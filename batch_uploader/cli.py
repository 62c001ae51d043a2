"""Command line interface for batch_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    ConsoleProgressSurface,
    FailureTimeline,
    render_configuration_summary,
    render_result,
)
from .models import SessionStatus, UploadConfig


DEFAULT_API_URL = "http://127.0.0.1:8080"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2
EXIT_INTERRUPTED = 130


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _resolve_log_level(debug: bool, log_level: Optional[str]) -> Optional[int]:
    """None means silent."""
    if debug:
        return logging.DEBUG
    if not log_level:
        return None
    return getattr(logging, log_level.upper(), logging.INFO)


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route log records through rich, or mute them entirely.

    Nothing is logged unless --debug or a log level (flag or
    UPLOADER_LOG_LEVEL) asks for it; --silent always wins.
    Returns "silent" or the effective level name.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    logging.disable(logging.NOTSET)

    level = None if silent else _resolve_log_level(debug, log_level)
    if level is None:
        logging.disable(logging.CRITICAL)
        root.setLevel(logging.CRITICAL + 1)
        return "silent"

    rich_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(rich_handler)
    root.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _normalize_dest(dest: Optional[str]) -> str:
    """Server paths are absolute: '' and '/' mean the root, 'a/b/' means '/a/b'."""
    if dest is None:
        return "/"
    value = dest.strip().strip("/")
    return f"/{value}" if value else "/"


def _unquote(value: str) -> str:
    for quote in ('"', "'"):
        if len(value) >= 2 and value.startswith(quote) and value.endswith(quote):
            return value[1:-1]
    return value


def _parse_env(content: str) -> Dict[str, str]:
    """KEY=VALUE lines; blank lines, comments and an 'export ' prefix are tolerated."""
    parsed: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if sep and key:
            parsed[key] = _unquote(value.strip())
    return parsed


def _load_env_file(path: Path, override: bool = False) -> None:
    """Export the file's variables; existing ones are kept unless override is set."""
    if not path.is_file():
        reason = "is not a file" if path.exists() else "not found"
        raise CLIError(f"env file {reason}: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for key, value in _parse_env(content).items():
        if override or key not in os.environ:
            os.environ[key] = value


def _default_env_file() -> Optional[Path]:
    candidate = Path(".env")
    return candidate if candidate.is_file() else None


def _build_config(args: argparse.Namespace) -> UploadConfig:
    try:
        return UploadConfig.from_env(
            batch_size=args.batch_size,
            max_concurrent_batches=args.max_batches,
            max_concurrent_transfers_per_batch=args.max_transfers,
        )
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


def _exit_code(status: SessionStatus) -> int:
    if status in (SessionStatus.SUCCESS, SessionStatus.EMPTY):
        return EXIT_OK
    if status == SessionStatus.PARTIAL:
        return EXIT_PARTIAL
    return EXIT_FAILED


async def _run_upload(
    sources: List[Path],
    dest: str,
    api_url: str,
    config: UploadConfig,
    show_listing: bool,
) -> int:
    from .orchestrator import UploadOrchestrator

    surface = ConsoleProgressSurface()
    timeline = FailureTimeline()

    async with UploadOrchestrator(api_url, config=config, surface=surface) as orchestrator:
        session = orchestrator.upload_paths(sources, dest)
        session.on_transfer_fail(timeline.on_transfer_fail)

        try:
            result = await session.wait()
        except asyncio.CancelledError:
            await session.cancel()
            raise

        render_result(result)

        if show_listing:
            try:
                entries = await orchestrator.list_directory(dest)
            except Exception as exc:
                print(f"WARNING: could not list {dest}: {exc}", file=sys.stderr)
            else:
                print(f"{dest}: {len(entries)} entries")
                for entry in entries:
                    name = entry.get("name", "?") if isinstance(entry, dict) else str(entry)
                    suffix = "/" if isinstance(entry, dict) and entry.get("isDir") else ""
                    print(f"  {name}{suffix}")

        return _exit_code(result.status)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch-up",
        description="Upload files and folders to a file server in concurrent batches.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files or folders to upload")
    parser.add_argument(
        "-d",
        "--dest",
        default=None,
        help="Destination folder on the server (default: /)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help=f"File server URL (default from UPLOADER_API_URL or {DEFAULT_API_URL})",
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        default=None,
        help="Files per batch (default from UPLOADER_BATCH_SIZE or 50)",
    )
    parser.add_argument(
        "--max-batches",
        type=int,
        default=None,
        help="Batches uploaded at the same time (default from UPLOADER_MAX_BATCHES or 5)",
    )
    parser.add_argument(
        "--max-transfers",
        type=int,
        default=None,
        help="Concurrent transfers per batch (default from UPLOADER_MAX_TRANSFERS or 50)",
    )
    parser.add_argument(
        "--list",
        dest="show_listing",
        action="store_true",
        help="Print the destination folder listing after the upload",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="batch-up (from batch_uploader)",
    )
    return parser


def _error(message: str) -> int:
    print(f"ERROR: {message}", file=sys.stderr)
    return EXIT_FAILED


def _check_sources(raw_sources: Sequence[Path]) -> List[Path]:
    sources = [Path(source).expanduser() for source in raw_sources]
    missing = [str(source) for source in sources if not source.exists()]
    if missing:
        raise CLIError(f"source does not exist: {', '.join(missing)}")
    return sources


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file = args.env_file or _default_env_file()
    try:
        if env_file is not None:
            _load_env_file(Path(env_file))
    except CLIError as exc:
        return _error(str(exc))

    log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level or os.getenv("UPLOADER_LOG_LEVEL"),
    )

    if not args.sources:
        parser.print_help()
        return EXIT_OK

    try:
        sources = _check_sources(args.sources)
        config = _build_config(args)
    except CLIError as exc:
        return _error(str(exc))

    api_url = args.api_url or os.getenv("UPLOADER_API_URL") or DEFAULT_API_URL
    dest = _normalize_dest(args.dest)

    render_configuration_summary(
        {
            "Sources": ", ".join(str(source) for source in sources),
            "Dest": dest,
            "API": api_url,
            "Batch Size": config.batch_size,
            "Parallel Batches": config.max_concurrent_batches,
            "Transfers / Batch": config.max_concurrent_transfers_per_batch,
            "Env File": str(env_file) if env_file else "-",
            "Logging": log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(sources, dest, api_url, config, args.show_listing))
    except CLIError as exc:
        return _error(str(exc))
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return EXIT_INTERRUPTED


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
