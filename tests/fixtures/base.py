"""
Base fixtures for the specwatch test suite.

This module provides foundational fixtures shared by unit and integration
tests: environment isolation and temporary project metadata.
"""

import json
import logging
import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Dict, Optional

import pytest


@pytest.fixture
def mock_env_vars() -> Generator[Dict[str, str], None, None]:
    """
    Provide an isolated environment for a test.

    Any SPECWATCH_ variables of the outer environment are removed; the test can
    set its own and the original environment is restored afterwards.

    Yields:
        Dict[str, str]: The live os.environ
    """
    original_environ = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("SPECWATCH_"):
            del os.environ[key]

    yield os.environ

    os.environ.clear()
    os.environ.update(original_environ)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path: Path to the temporary directory
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def package_dir(temp_dir: Path) -> Path:
    """A directory to hold project metadata files."""
    directory = temp_dir / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def write_package_json(package_dir: Path) -> Callable[..., Path]:
    """
    Factory writing a package.json into package_dir.

    Returns:
        Callable: write(base_url=None, **fields) -> Path of the directory
    """

    def write(base_url: Optional[str] = None, **fields: Any) -> Path:
        content = {"name": "sample-api", "description": "Sample API", "version": "2.1.0"}
        content.update(fields)
        if base_url is not None:
            content["baseUrlPath"] = base_url
        (package_dir / "package.json").write_text(json.dumps(content))
        return package_dir

    return write


@pytest.fixture
def write_pyproject(package_dir: Path) -> Callable[..., Path]:
    """
    Factory writing a pyproject.toml into package_dir.

    Returns:
        Callable: write(base_url=None) -> Path of the directory
    """

    def write(base_url: Optional[str] = None) -> Path:
        lines = [
            "[project]",
            'name = "inventory-service"',
            'description = "Inventory service"',
            'version = "3.4.5"',
        ]
        if base_url is not None:
            lines += ["", "[tool.specwatch]", f'base-url-path = "{base_url}"']
        (package_dir / "pyproject.toml").write_text("\n".join(lines) + "\n")
        return package_dir

    return write


@pytest.fixture
def reset_logging() -> Generator[logging.Logger, None, None]:
    """
    Restore the specwatch logger after a test configured it.

    Yields:
        logging.Logger: The specwatch namespace logger
    """
    logger = logging.getLogger("specwatch")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate

    yield logger

    for handler in list(logger.handlers):
        if handler not in handlers:
            handler.close()
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate
