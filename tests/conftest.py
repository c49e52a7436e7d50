"""
Shared pytest fixtures for jobspine tests.

This module provides:
- Catalog, settings and log-context cleanup for test isolation
- Memory and SQLite-backed settings
- A handle factory that shuts every scheduler down after the test
- ``wait_until`` for assertions on background fires
"""

import time
import uuid
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog

# Example jobs are imported once so their declarations are part of every
# catalog snapshot below.
import jobspine.jobs.job1  # noqa: F401
import jobspine.jobs.job2  # noqa: F401
import jobspine.jobs.job3  # noqa: F401
from jobspine.scheduling import SchedulerHandle, build_scheduler_handle, catalog
from jobspine.settings import JobSpineSettings, clear_settings_cache


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without an explicit marker as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolate_catalog() -> Generator[None, None, None]:
    """Drop any ``@job`` declarations a test adds."""
    snapshot = list(catalog._declarations)
    yield
    catalog._declarations[:] = snapshot


@pytest.fixture(autouse=True)
def isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Fresh settings cache and no stray JOBSPINE_* variables."""
    import os

    for name in list(os.environ):
        if name.startswith("JOBSPINE_") or name == "JOB3_CRON":
            monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def isolate_log_context() -> Generator[None, None, None]:
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def memory_settings() -> JobSpineSettings:
    """In-memory job store, paused start, unique engine name."""
    return JobSpineSettings(
        _env_file=None,
        store_url="memory://",
        engine_name=f"test-{uuid.uuid4().hex[:8]}",
        thread_pool_size=4,
        start_paused=True,
    )


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'jobs.db'}"


@pytest.fixture
def sqlite_settings(sqlite_url: str) -> Callable[..., JobSpineSettings]:
    """Factory for settings sharing one SQLite job store.

    Each call gets its own engine name, as separate processes would.
    """

    def _make(**overrides) -> JobSpineSettings:
        values = {
            "store_url": sqlite_url,
            "engine_name": f"test-{uuid.uuid4().hex[:8]}",
            "thread_pool_size": 2,
            "start_paused": True,
        }
        values.update(overrides)
        return JobSpineSettings(_env_file=None, **values)

    return _make


# =============================================================================
# Scheduler Fixtures
# =============================================================================


@pytest.fixture
def make_handle() -> Generator[Callable[..., SchedulerHandle], None, None]:
    """``build_scheduler_handle`` that shuts its schedulers down at teardown."""
    handles: list[SchedulerHandle] = []

    def _make(declarations, **kwargs) -> SchedulerHandle:
        handle = build_scheduler_handle(declarations, **kwargs)
        handles.append(handle)
        return handle

    yield _make

    for handle in handles:
        handle.shutdown(wait=False)


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
