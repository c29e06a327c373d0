"""Test configuration."""

import os
from pathlib import Path
from typing import List

import pytest
from dotenv import load_dotenv
from pytest import Config

# Settings are read once at import time, so the test environment must be in
# place before any app module is imported
TEST_JWT_SECRET = "test-signing-secret-with-enough-length"

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("RECORD_STORE_TYPE", "memory")
os.environ.setdefault("STORAGE_TYPE", "memory")
os.environ.setdefault("SWEEP_ENABLED", "false")
os.environ.setdefault("AUTH_ENABLED", "true")
os.environ.setdefault("AUTH_JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("FRONTEND_URL", "http://share.test")

# Local overrides for the test run
env_test_file = Path(__file__).parent.parent / ".env.test"
if env_test_file.exists():
    load_dotenv(env_test_file, override=True)

from app.core.logging import configure_logging  # noqa: E402

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


pytest_plugins: List[str] = [
    "tests.fixtures.api",
    "tests.fixtures.content_store",
]


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    configure_logging(testing=True)
    config.addinivalue_line("markers", "slow: mark test as slow to run")
