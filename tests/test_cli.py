"""Tests for batch-up CLI helpers."""
import logging
import os

import pytest

from batch_uploader.cli import (
    CLIError,
    EXIT_FAILED,
    EXIT_OK,
    EXIT_PARTIAL,
    _build_parser,
    _exit_code,
    _load_env_file,
    _normalize_dest,
    _setup_logging,
    run_cli,
)
from batch_uploader.models import SessionStatus, UploadConfig


def test_normalize_dest():
    assert _normalize_dest(None) == "/"
    assert _normalize_dest("") == "/"
    assert _normalize_dest(" / ") == "/"
    assert _normalize_dest("/Photos/") == "/Photos"
    assert _normalize_dest("Photos/2026") == "/Photos/2026"


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# comment",
                "UPLOADER_API_URL=http://localhost:3312",
                "UPLOADER_BATCH_SIZE='20'",
                "export UPLOADER_MAX_BATCHES=3",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )

    for name in ("UPLOADER_API_URL", "UPLOADER_BATCH_SIZE", "UPLOADER_MAX_BATCHES"):
        # setenv records the name so monkeypatch undoes what the loader writes
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

    _load_env_file(env_path)

    assert os.environ["UPLOADER_API_URL"] == "http://localhost:3312"
    assert os.environ["UPLOADER_BATCH_SIZE"] == "20"
    assert os.environ["UPLOADER_MAX_BATCHES"] == "3"


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("UPLOADER_BATCH_SIZE=20\n", encoding="utf-8")
    monkeypatch.setenv("UPLOADER_BATCH_SIZE", "5")

    _load_env_file(env_path)
    assert os.environ["UPLOADER_BATCH_SIZE"] == "5"

    _load_env_file(env_path, override=True)
    assert os.environ["UPLOADER_BATCH_SIZE"] == "20"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError):
        _load_env_file(tmp_path / "nope.env")


def test_setup_logging_silent_by_default():
    try:
        mode = _setup_logging(debug=False, silent=False, log_level=None)
        assert mode == "silent"
        assert logging.getLogger().manager.disable == logging.CRITICAL
    finally:
        logging.disable(logging.NOTSET)


def test_setup_logging_debug():
    try:
        mode = _setup_logging(debug=True, silent=False, log_level=None)
        assert mode == "DEBUG"
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        logging.disable(logging.NOTSET)


@pytest.mark.parametrize(
    "status,code",
    [
        (SessionStatus.SUCCESS, EXIT_OK),
        (SessionStatus.EMPTY, EXIT_OK),
        (SessionStatus.PARTIAL, EXIT_PARTIAL),
        (SessionStatus.FAILED, EXIT_FAILED),
        (SessionStatus.CANCELLED, EXIT_FAILED),
    ],
)
def test_exit_code(status, code):
    assert _exit_code(status) == code


def test_parser_options():
    args = _build_parser().parse_args(
        ["photos", "-d", "/backup", "-b", "10", "--max-batches", "2", "--max-transfers", "4", "--list"]
    )
    assert [str(p) for p in args.sources] == ["photos"]
    assert args.dest == "/backup"
    assert args.batch_size == 10
    assert args.max_batches == 2
    assert args.max_transfers == 4
    assert args.show_listing is True


def test_run_cli_without_sources_prints_help(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    try:
        assert run_cli([]) == EXIT_OK
    finally:
        logging.disable(logging.NOTSET)
    assert "batch-up" in capsys.readouterr().out


def test_run_cli_missing_source(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    try:
        assert run_cli([str(tmp_path / "missing")]) == EXIT_FAILED
    finally:
        logging.disable(logging.NOTSET)
    assert "does not exist" in capsys.readouterr().err


def test_env_file_values_do_not_change_config_defaults():
    config = UploadConfig.from_env()

    assert config.batch_size == 50
    assert config.max_concurrent_batches == 5
    assert config.max_concurrent_transfers_per_batch == 50
