"""
Fixtures package for the specwatch test suite.

This package provides reusable fixtures: temporary project metadata and a
sample application wired to a generator.
"""

from tests.fixtures.base import (
    mock_env_vars,
    package_dir,
    reset_logging,
    temp_dir,
    write_package_json,
    write_pyproject,
)
from tests.fixtures.apps import client, generator, sample_app
