"""Shared fixtures for CLI module tests."""

from __future__ import annotations

import pytest
from click.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers installed by `markerseg run` so tmp dirs can be removed."""
    import logging

    yield
    pkg_logger = logging.getLogger("markerseg")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()
    pkg_logger.propagate = True
