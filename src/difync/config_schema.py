"""Unified configuration schema for difync.

Defines Pydantic models for the YAML config file, with dedicated sections
for the Dify connection, sync behaviour, and logging.  The validated
``UnifiedConfig`` is passed to ``difync.config.load_config()`` as the
lowest-precedence source.

Usage:
    from difync.config_loader import load_hierarchical_config
    from difync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class DifyConfig(BaseModel):
    """Dify console connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="Dify base URL")
    email: str | None = Field(
        default=None, description="Console login email"
    )
    password: str | None = Field(
        default=None, description="Console login password"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="HTTP timeout in seconds",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """DSL sync settings."""

    dsl_directory: str | None = Field(
        default=None, description="Directory containing DSL files"
    )
    app_map_file: str | None = Field(
        default=None, description="Path to the app map JSON file"
    )
    mode: Literal["download", "bidirectional"] = Field(
        default="download",
        description="Directions a timestamp comparison may trigger",
    )
    force_direction: Literal["none", "upload", "download"] = Field(
        default="none",
        description="Always run this direction, ignoring timestamps",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        verbose: Log every per-app result.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    verbose: bool = Field(default=False, description="Verbose output")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    dify: DifyConfig = Field(default_factory=DifyConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
