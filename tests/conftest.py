# tests/conftest.py

"""Shared pytest fixtures for all price tracker tests."""

import logging
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def isolated_charts(tmp_path: Path) -> Generator[None, None, None]:
    """Write charts to a temp dir and never open a browser."""
    with (
        patch("src.storage.chart_exporter._CHARTS_DIR", tmp_path / "charts"),
        patch("webbrowser.open"),
    ):
        yield


@pytest.fixture(autouse=True)
def reset_project_logger() -> Generator[None, None, None]:
    """Detach handlers added by setup_logging during a test."""
    yield
    project_logger = logging.getLogger("price_tracker")
    for handler in list(project_logger.handlers):
        handler.close()
        project_logger.removeHandler(handler)
