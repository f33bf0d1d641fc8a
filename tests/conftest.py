"""Root test configuration."""

import logging

import pytest
import structlog
from accesslayer.config.settings import get_settings


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Run each test with default settings, away from any local .env file."""
    for name in (
        "ACCESSLAYER_EVALUATION_TIMEOUT_MS",
        "ACCESSLAYER_MAX_CONDITION_DEPTH",
        "ACCESSLAYER_MAX_CONDITION_NODES",
        "ACCESSLAYER_MAX_REGEX_LENGTH",
        "ACCESSLAYER_AUDIT_ENABLED",
        "ACCESSLAYER_AUDIT_RETENTION",
        "ACCESSLAYER_LOG_LEVEL",
        "ACCESSLAYER_LOG_FORMAT",
        "ACCESSLAYER_POLICY_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
