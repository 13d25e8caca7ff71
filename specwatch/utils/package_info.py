"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Project metadata used to seed the `info` block of the document.

Metadata is read from the observed project, not from specwatch itself: a
pyproject.toml ([project] table plus an optional [tool.specwatch] table) or,
for projects that ship one, a package.json.
"""

import json
import tomllib
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from typing import Any

from specwatch.core.logging import get_logger

PACKAGE_NAME = "specwatch"
METADATA_FILES = ("pyproject.toml", "package.json")
BASE_URL_SUFFIX = ", base url :"

logger = get_logger("specwatch.package_info")


@dataclass
class PackageInfo:
    """Fields of the document's `info` block, plus the declared base URL."""

    title: str = "API"
    description: str = ""
    version: str = "1.0.0"
    base_url_path: str | None = None

    def info_description(self) -> str:
        if self.base_url_path:
            return f"{self.description}{BASE_URL_SUFFIX}{self.base_url_path}"
        return self.description


def get_version() -> str:
    """
    Get the installed specwatch version.

    Returns:
        str: The package version

    """
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        from specwatch import __version__

        return __version__


def find_metadata_file(path: str | Path) -> Path | None:
    """
    Locate the metadata file for a project.

    Args:
        path: A metadata file, or a directory searched for pyproject.toml then package.json

    Returns:
        Path | None: The metadata file, or None if there is none

    """
    candidate = Path(path)
    if candidate.is_file():
        return candidate
    if candidate.is_dir():
        for name in METADATA_FILES:
            if (candidate / name).is_file():
                return candidate / name
    return None


def _from_pyproject(content: dict[str, Any]) -> PackageInfo:
    project = content.get("project", {})
    poetry = content.get("tool", {}).get("poetry", {})
    tool = content.get("tool", {}).get(PACKAGE_NAME, {})
    return PackageInfo(
        title=str(project.get("name") or poetry.get("name") or PackageInfo.title),
        description=str(project.get("description") or poetry.get("description") or ""),
        version=str(project.get("version") or poetry.get("version") or PackageInfo.version),
        base_url_path=tool.get("base-url-path") or tool.get("base_url_path"),
    )


def _from_package_json(content: dict[str, Any]) -> PackageInfo:
    return PackageInfo(
        title=str(content.get("name") or PackageInfo.title),
        description=str(content.get("description") or ""),
        version=str(content.get("version") or PackageInfo.version),
        base_url_path=content.get("baseUrlPath"),
    )


def load_package_info(path: str | Path | None = None) -> PackageInfo:
    """
    Load project metadata.

    Missing or unreadable metadata is not an error: a warning is logged and
    the defaults are returned.

    Args:
        path: Directory or metadata file; defaults to the working directory

    Returns:
        PackageInfo: The metadata found

    """
    metadata_file = find_metadata_file(path if path is not None else Path.cwd())
    if metadata_file is None:
        logger.warning(f"No project metadata found at {path or Path.cwd()}, using defaults")
        return PackageInfo()

    try:
        if metadata_file.suffix == ".toml":
            with open(metadata_file, "rb") as f:
                info = _from_pyproject(tomllib.load(f))
        else:
            with open(metadata_file, encoding="utf-8") as f:
                info = _from_package_json(json.load(f))
    except (OSError, ValueError, AttributeError) as e:
        logger.warning(f"Could not read project metadata from {metadata_file}: {e}")
        return PackageInfo()

    logger.debug(f"Loaded project metadata from {metadata_file}: {info.title} {info.version}")
    return info
