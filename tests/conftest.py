"""Shared fixtures."""
import os

import pytest


@pytest.fixture(autouse=True)
def isolated_uploader_env(monkeypatch):
    """Every test starts without UPLOADER_* variables and leaves none behind."""
    for name in [key for key in os.environ if key.startswith("UPLOADER_")]:
        monkeypatch.delenv(name)
    for name in (
        "UPLOADER_API_URL",
        "UPLOADER_BATCH_SIZE",
        "UPLOADER_MAX_BATCHES",
        "UPLOADER_MAX_TRANSFERS",
        "UPLOADER_THROTTLE_MS",
        "UPLOADER_TIMEOUT",
        "UPLOADER_LOG_LEVEL",
    ):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    yield
