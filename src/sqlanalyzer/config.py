"""
Configuration system for sqlanalyzer.

Implements 12-factor config principles:
- Environment variables as primary config source
- Optional JSON or YAML config file for local development

Usage:
    from sqlanalyzer.config import get_config

    config = get_config()

    if config.max_workers > 1:
        ...
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sqlanalyzer.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SQLANALYZER_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_LEVEL = "WARNING"


class Config(BaseModel):
    """
    sqlanalyzer configuration.

    Loaded from environment variables and an optional config file.
    """

    model_config = ConfigDict(frozen=True)

    # Session behavior
    include_actual_default: bool = Field(
        default=False,
        description="Run EXPLAIN ANALYZE when the caller does not say",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        description="Queries analyzed concurrently within one session",
    )
    query_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Per-query time budget; exceeded queries become errors",
    )
    max_queries_per_session: int = Field(
        default=100,
        ge=1,
        description="Largest accepted session request",
    )

    # Safety
    reject_multi_statement: bool = Field(
        default=False,
        description="Block input containing more than one SQL statement",
    )

    # Plan parsing
    max_plan_nodes: int = Field(
        default=50_000,
        gt=0,
        description="Maximum number of plan nodes per parsed plan",
    )

    # Logging
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        description="Root log level for the CLI and API server",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            logger.warning("Unknown log level %r, using %s", v, DEFAULT_LOG_LEVEL)
            return DEFAULT_LOG_LEVEL
        return level


def _parse_env_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_env_int(value: str | None, default: int) -> int:
    """Parse integer from environment variable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Could not parse integer setting %r, using %d", value, default)
        return default


def _parse_env_float(value: str | None, default: float | None) -> float | None:
    """Parse float from environment variable."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Could not parse float setting %r, using %s", value, default)
        return default


def _build_config(kwargs: dict[str, Any]) -> Config:
    """Validate settings, converting pydantic errors to ConfigurationError."""
    try:
        return Config(**kwargs)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(x) for x in first["loc"]) or None
        raise ConfigurationError(
            f"Invalid configuration: {key}: {first['msg']}",
            config_key=key,
        ) from e


def load_config_from_env() -> Config:
    """
    Load configuration from environment variables.

    Examples:
    - SQLANALYZER_MAX_WORKERS=4
    - SQLANALYZER_QUERY_TIMEOUT_SECONDS=30
    - SQLANALYZER_REJECT_MULTI_STATEMENT=true
    """
    env = os.environ

    config_kwargs: dict[str, Any] = {
        "include_actual_default": _parse_env_bool(
            env.get(f"{ENV_PREFIX}INCLUDE_ACTUAL"), False
        ),
        "max_workers": _parse_env_int(env.get(f"{ENV_PREFIX}MAX_WORKERS"), 1),
        "query_timeout_seconds": _parse_env_float(
            env.get(f"{ENV_PREFIX}QUERY_TIMEOUT_SECONDS"), None
        ),
        "max_queries_per_session": _parse_env_int(
            env.get(f"{ENV_PREFIX}MAX_QUERIES"), 100
        ),
        "reject_multi_statement": _parse_env_bool(
            env.get(f"{ENV_PREFIX}REJECT_MULTI_STATEMENT"), False
        ),
        "max_plan_nodes": _parse_env_int(
            env.get(f"{ENV_PREFIX}MAX_PLAN_NODES"), 50_000
        ),
        "log_level": env.get(f"{ENV_PREFIX}LOG_LEVEL", DEFAULT_LOG_LEVEL),
    }

    return _build_config(config_kwargs)


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    Falls back to environment variables when the file is missing or unreadable.
    """
    if not path.exists():
        logger.warning("Config file not found: %s, using environment", path)
        return load_config_from_env()

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        return load_config_from_env()

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    return _build_config(data)


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Loads from:
    1. SQLANALYZER_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
