from __future__ import annotations

import logging

import pytest

from mpupload.common.config import get_settings

SETTINGS_ENV = (
    "S3_REGION",
    "AWS_REGION",
    "S3_ENDPOINT_URL",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "S3_SESSION_TOKEN",
    "S3_USE_SSL",
    "S3_ADDRESSING_STYLE",
    "S3_CONNECT_TIMEOUT",
    "S3_READ_TIMEOUT",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "METRICS_TEXTFILE",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run each test without the caller's environment or .env file."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo setup_logging() calls made by a test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    package_level = logging.getLogger("mpupload").level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("mpupload").setLevel(package_level)
