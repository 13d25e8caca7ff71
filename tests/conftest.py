"""
Test configuration and fixtures for the specwatch project.

This file is the root pytest configuration file that registers the markers
and imports fixtures from the fixtures modules to make them available to all
tests.
"""

import pytest

from tests.fixtures.base import (
    mock_env_vars,
    package_dir,
    reset_logging,
    temp_dir,
    write_package_json,
    write_pyproject,
)
from tests.fixtures.apps import client, generator, sample_app


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
