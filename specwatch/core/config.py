"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Configuration management for specwatch.

Settings come from SPECWATCH_ prefixed environment variables, explicit keyword
overrides, or a mapping passed to ``init``. Unknown keys in such a mapping are
ignored so an empty mapping is always a valid configuration.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator

from specwatch.core.logging import get_logger

logger = get_logger(__name__)


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig(BaseModel):
    """Base configuration class with common functionality."""

    ENV_PREFIX: ClassVar[str] = "SPECWATCH_"

    @classmethod
    def get_env_var(cls, key: str, default: Any = None) -> Any:
        """
        Get an environment variable with the class prefix.

        Args:
        ----
            key: Key name without prefix
            default: Default value if environment variable is not found

        Returns:
        -------
            The environment variable value or default

        """
        return os.environ.get(f"{cls.ENV_PREFIX}{key.upper()}", default)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None):
        """Build a configuration from a mapping, dropping keys the model does not know."""
        known = {key: value for key, value in (values or {}).items() if key in cls.model_fields}
        ignored = sorted(set(values or {}) - set(known))
        if ignored:
            logger.debug(f"Ignoring unknown {cls.__name__} options: {', '.join(ignored)}")
        return cls(**known)


class LoggingConfig(BaseConfig):
    """Configuration for logging settings."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    use_rich: bool = Field(
        default=True,
        description="Whether to use rich for console log output",
    )
    log_file: str | None = Field(
        default=None,
        description="Path to the log file (None for console-only logging)",
    )
    json_format: bool = Field(
        default=False,
        description="Whether to use JSON format for logs",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        """Validate that the log level is valid."""
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            logger.warning(f"Invalid log level '{value}', defaulting to INFO")
            return "INFO"
        return value

    @classmethod
    def from_env(cls, **overrides) -> "LoggingConfig":
        """Create a logging configuration from environment variables."""
        config = {
            "level": cls.get_env_var("LOG_LEVEL", "INFO"),
            "use_rich": _env_bool(cls.get_env_var("LOG_USE_RICH"), True),
            "log_file": cls.get_env_var("LOG_FILE"),
            "json_format": _env_bool(cls.get_env_var("LOG_JSON"), False),
        }
        config.update(overrides)
        return cls(**config)

    def get_log_level_int(self) -> int:
        return getattr(logging, self.level)

    def configure_logging(self, debug: bool = False) -> None:
        """
        Configure logging based on the settings.

        Args:
        ----
            debug: Whether to force debug mode

        """
        from specwatch.core.logging import configure_logging as configure_contextual_logging

        configure_contextual_logging(
            level=logging.DEBUG if debug else self.get_log_level_int(),
            log_file=self.log_file,
            json_format=self.json_format,
            include_timestamp=True,
            use_rich=self.use_rich,
            debug=debug,
        )


class GeneratorConfig(BaseConfig):
    """Configuration for the traffic observer and the document it builds."""

    spec_path: str = Field(
        default="/api-spec",
        description="Path of the read-only endpoint serving the document",
    )
    package_info_path: str | None = Field(
        default=None,
        description="Directory or file holding project metadata (defaults to the working directory)",
    )
    base_path: str | None = Field(
        default=None,
        description="Value of basePath in the document, omitted when unset",
    )
    max_body_bytes: int = Field(
        default=1024 * 1024,
        ge=0,
        description="Bodies larger than this are not captured for inference",
    )
    header_parameters: list[str] = Field(
        default_factory=list,
        description="Request headers documented as in: header parameters",
    )
    ignore_paths: list[str] = Field(
        default_factory=list,
        description="Literal request paths that are never observed",
    )

    @field_validator("spec_path")
    @classmethod
    def validate_spec_path(cls, value):
        if not value.startswith("/"):
            return "/" + value
        return value

    @field_validator("header_parameters")
    @classmethod
    def lowercase_headers(cls, value):
        return [name.lower() for name in value]

    @classmethod
    def from_env(cls, **overrides) -> "GeneratorConfig":
        """Create a generator configuration from environment variables."""
        config: dict[str, Any] = {
            "spec_path": cls.get_env_var("SPEC_PATH", "/api-spec"),
            "package_info_path": cls.get_env_var("PACKAGE_INFO_PATH"),
            "base_path": cls.get_env_var("BASE_PATH"),
            "max_body_bytes": int(cls.get_env_var("MAX_BODY_BYTES", str(1024 * 1024))),
            "header_parameters": _env_list(cls.get_env_var("HEADER_PARAMETERS")),
            "ignore_paths": _env_list(cls.get_env_var("IGNORE_PATHS")),
        }
        config.update(overrides)
        return cls(**config)


class AppConfig(BaseConfig):
    """Main application configuration that aggregates all other configurations."""

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    generator: GeneratorConfig = Field(
        default_factory=GeneratorConfig,
        description="Traffic observer configuration",
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag",
    )

    @classmethod
    def from_env(cls, **overrides) -> "AppConfig":
        """Create an application configuration from environment variables."""
        config: dict[str, Any] = {
            "logging": LoggingConfig.from_env(),
            "generator": GeneratorConfig.from_env(),
            "debug": _env_bool(cls.get_env_var("DEBUG"), False),
        }

        for key, value in overrides.items():
            if key == "logging" and isinstance(value, Mapping):
                config[key] = LoggingConfig(**value)
            elif key == "generator" and isinstance(value, Mapping):
                config[key] = GeneratorConfig(**value)
            else:
                config[key] = value

        return cls(**config)

    def configure_logging(self) -> None:
        self.logging.configure_logging(debug=self.debug)


_app_config = None


def get_app_config() -> AppConfig:
    """
    Get the global application configuration.

    Returns
    -------
        The application configuration instance

    """
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config


def init_app_config(config: AppConfig = None, **kwargs) -> AppConfig:
    """
    Initialize the global application configuration.

    Args:
    ----
        config: An existing AppConfig instance
        **kwargs: Key-value pairs for creating a new AppConfig

    Returns:
    -------
        The application configuration instance

    """
    global _app_config
    _app_config = config if config is not None else AppConfig.from_env(**kwargs)
    return _app_config
