"""Root pytest configuration for test discovery and auto-skip behavior.

Test Structure:
    tests/
    ├── unit/                  # Fast tests; persistence runs on in-memory SQLite
    │   ├── domain/
    │   ├── application/
    │   ├── infrastructure/
    │   └── presentation/
    └── shared/                # Shared fixtures and factories

Environment Variables:
    RUN_INTEGRATION=1    Run @pytest.mark.integration tests
    RUN_EXTERNAL=1       Run @pytest.mark.external tests (real provider sandboxes)
    RUN_ALL_TESTS=1      Run all tests (overrides other settings)

Pytest Options:
    --run-integration    Run integration tests
    --run-external       Run external provider tests
    --run-all            Run all tests
"""

import os

import pytest

from finsync_config import clear_settings_cache

from tests.shared.fixtures.database import (  # noqa: F401
    db_router,
    fake_clock,
    file_db_router,
    repositories,
    replicated_router,
)


def _enabled(config, option: str, env_var: str) -> bool:
    return config.getoption(option) or os.environ.get(env_var, "").lower() in (
        "1",
        "true",
        "yes",
    )


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.integration",
    )
    parser.addoption(
        "--run-external",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.external",
    )
    parser.addoption(
        "--run-all",
        action="store_true",
        default=False,
        help="Run all tests regardless of markers",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Tests against a real PostgreSQL primary/replica setup (auto-skipped)",
    )
    config.addinivalue_line(
        "markers",
        "external: Tests connecting to real provider sandboxes (auto-skipped)",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take more than 1 second",
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip tests based on markers unless explicitly enabled."""
    if _enabled(config, "--run-all", "RUN_ALL_TESTS"):
        return

    run_integration = _enabled(config, "--run-integration", "RUN_INTEGRATION")
    run_external = _enabled(config, "--run-external", "RUN_EXTERNAL")

    skip_integration = pytest.mark.skip(
        reason="Integration test - run with --run-integration or RUN_INTEGRATION=1",
    )
    skip_external = pytest.mark.skip(
        reason="External test - run with --run-external or RUN_EXTERNAL=1",
    )

    for item in items:
        item_markers = {mark.name for mark in item.iter_markers()}
        if not run_integration and "integration" in item_markers:
            item.add_marker(skip_integration)
        if not run_external and "external" in item_markers:
            item.add_marker(skip_external)


@pytest.fixture(scope="session", autouse=True)
def configure_app_settings():
    """Drop cached settings so every session starts from the environment."""
    clear_settings_cache()
    yield
    clear_settings_cache()
