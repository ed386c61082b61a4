"""Pytest configuration and shared fixtures for async_pipeline tests.

This module provides:
- Basic pytest configuration
- Isolation of PIPELINE_* environment variables and the cached config
- Small step helpers shared across test modules
"""

import os
import sys
from pathlib import Path
from typing import Dict, List

import pytest

# Add project root to Python path to allow imports without installing
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from async_pipeline import set_config  # noqa: E402


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "asyncio: mark test as async (automatically handled by pytest-asyncio)"
    )
    config.addinivalue_line(
        "markers",
        "unit: mark test as a unit test (fast, isolated)"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (relies on real timers)"
    )


# ==================== Environment Fixtures ====================

@pytest.fixture(scope="function", autouse=True)
def isolate_environment(monkeypatch):
    """Isolate each test from PIPELINE_* variables and the cached config.

    This fixture automatically applies to all tests and ensures that
    configuration loaded by one test never leaks into another.
    """
    for key in list(os.environ):
        if key.startswith("PIPELINE_"):
            monkeypatch.delenv(key, raising=False)
    set_config(None)

    yield

    set_config(None)


@pytest.fixture
def pipeline_env(monkeypatch) -> Dict[str, str]:
    """Provide non-default PIPELINE_* environment variables.

    Returns:
        Dict of environment variables that were set
    """
    env_vars = {
        "PIPELINE_RETRY_COUNT": "5",
        "PIPELINE_RETRY_DELAY": "0.01",
        "PIPELINE_CANCEL_ON_TIMEOUT": "true",
        "PIPELINE_LOG_LEVEL": "debug",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    return env_vars


# ==================== Step Helpers ====================

class FlakyStep:
    """Async step failing a fixed number of times before succeeding."""

    def __init__(self, failures: int, result_factor: int = 10):
        self.failures = failures
        self.result_factor = result_factor
        self.calls = 0

    async def __call__(self, value: int) -> int:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"attempt {self.calls} failed")
        return value * self.result_factor


@pytest.fixture
def flaky_step():
    """Factory for FlakyStep instances."""
    return FlakyStep


@pytest.fixture
def hook_recorder():
    """Record hook invocations as (kind, name, payload) tuples."""
    events: List[tuple] = []

    class Recorder:
        def __init__(self):
            self.events = events

        def on_start(self, name):
            events.append(("start", name, None))

        def on_success(self, name, elapsed):
            events.append(("success", name, elapsed))

        def on_error(self, name, error):
            events.append(("error", name, error))

    return Recorder()
