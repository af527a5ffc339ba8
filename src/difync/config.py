"""Run configuration for difync.

Reads Dify connection and sync settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.  The result is one
frozen ``Config`` value built once at startup and passed explicitly to the
client and the sync engine.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    DIFY_BASE_URL: Dify instance URL (required)
    DIFY_EMAIL: Console login email (required)
    DIFY_PASSWORD: Console login password (required)
    DIFY_INSECURE: Skip SSL verification (optional, default: false)
    DIFY_TIMEOUT: HTTP timeout in seconds (optional, default: 30)
    DSL_DIRECTORY: Directory containing DSL files (optional, default: dsl)
    APP_MAP_FILE: Path to the app map file (optional, default: app_map.json)
    DIFYNC_MODE: "download" (default) or "bidirectional"
    DIFYNC_FORCE_DIRECTION: "none" (default), "upload" or "download"
    DIFYNC_VERBOSE: Enable verbose output (optional, default: false)
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from difync.errors import ConfigError

if TYPE_CHECKING:
    from difync.config_schema import UnifiedConfig

logger = logging.getLogger(__name__)

DEFAULT_DSL_DIRECTORY = "dsl"
DEFAULT_APP_MAP_FILE = "app_map.json"
DEFAULT_TIMEOUT = 30.0


class SyncMode(str, Enum):
    """Which directions a timestamp comparison may trigger."""

    DOWNLOAD = "download"
    BIDIRECTIONAL = "bidirectional"


class ForceDirection(str, Enum):
    """Override that skips timestamp comparison entirely."""

    NONE = "none"
    UPLOAD = "upload"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class Config:
    base_url: str
    email: str
    password: str
    dsl_directory: Path
    app_map_file: Path
    dry_run: bool = False
    mode: SyncMode = SyncMode.DOWNLOAD
    force_direction: ForceDirection = ForceDirection.NONE
    verbose: bool = False
    insecure: bool = False
    timeout: float = DEFAULT_TIMEOUT


def validate_base_url(url: str) -> str:
    """Validate and normalise a Dify base URL.

    Returns:
        The URL with surrounding whitespace and trailing slashes removed.

    Raises:
        ConfigError: If the URL is not http(s) or has no hostname.
    """
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        raise ConfigError(
            f"Invalid Dify base URL '{url}': must start with http:// or https://"
        )
    if not urlparse(url).hostname:
        raise ConfigError(
            f"Invalid Dify base URL '{url}': URL must include a hostname"
        )
    return url.rstrip("/")


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _parse_enum(enum_cls, raw: str, source: str):
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(
            f"Invalid {source} '{raw}': must be one of {choices}"
        ) from None


def load_config(
    base_url: str | None = None,
    dsl_dir: str | None = None,
    app_map: str | None = None,
    dry_run: bool = False,
    mode: str | None = None,
    force_direction: str | None = None,
    verbose: bool = False,
    insecure: bool = False,
    file_config: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > file_config > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        base_url: Override Dify base URL.
        dsl_dir: Override DSL directory.
        app_map: Override app map file path.
        dry_run: Compute actions without writing anything.
        mode: Override sync mode (``download`` or ``bidirectional``).
        force_direction: Override forced direction.
        verbose: Enable verbose output (CLI flag).
        insecure: Skip SSL verification (CLI flag).
        file_config: Values from the YAML config file, used as fallback.

    Returns:
        Frozen, validated Config instance.

    Raises:
        ConfigError: If required settings are missing or a value is invalid.
    """
    dify = file_config.dify if file_config is not None else None
    sync = file_config.sync if file_config is not None else None
    log = file_config.logging if file_config is not None else None

    # --- Connection settings: CLI > env > YAML > error ---

    final_url = base_url or os.getenv("DIFY_BASE_URL") or (dify and dify.url)
    if not final_url:
        raise ConfigError(
            "Dify base URL is required. Set with --base-url or DIFY_BASE_URL env var."
        )
    final_url = validate_base_url(final_url)

    email = os.getenv("DIFY_EMAIL") or (dify and dify.email)
    if not email or not email.strip():
        raise ConfigError(
            "Dify email is required. Set with DIFY_EMAIL env var."
        )

    password = os.getenv("DIFY_PASSWORD") or (dify and dify.password)
    if not password or not password.strip():
        raise ConfigError(
            "Dify password is required. Set with DIFY_PASSWORD env var."
        )

    # --- Paths: CLI > env > YAML > default ---

    final_dsl_dir = (
        dsl_dir
        or os.getenv("DSL_DIRECTORY")
        or (sync and sync.dsl_directory)
        or DEFAULT_DSL_DIRECTORY
    )
    final_app_map = (
        app_map
        or os.getenv("APP_MAP_FILE")
        or (sync and sync.app_map_file)
        or DEFAULT_APP_MAP_FILE
    )

    # --- Sync behaviour ---

    raw_mode = mode or os.getenv("DIFYNC_MODE")
    if raw_mode:
        final_mode = _parse_enum(SyncMode, raw_mode, "sync mode")
    elif sync is not None:
        final_mode = SyncMode(sync.mode)
    else:
        final_mode = SyncMode.DOWNLOAD

    raw_force = force_direction or os.getenv("DIFYNC_FORCE_DIRECTION")
    if raw_force:
        final_force = _parse_enum(
            ForceDirection, raw_force, "force direction"
        )
    elif sync is not None:
        final_force = ForceDirection(sync.force_direction)
    else:
        final_force = ForceDirection.NONE

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("DIFY_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(dify and dify.insecure)

    if verbose:
        final_verbose = True
    else:
        env_verbose = _get_bool_env("DIFYNC_VERBOSE")
        if env_verbose is not None:
            final_verbose = env_verbose
        else:
            final_verbose = bool(log and log.verbose)

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("DIFY_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ConfigError(
                f"Invalid DIFY_TIMEOUT '{timeout_raw}': must be a positive number of seconds"
            ) from None
        if not math.isfinite(final_timeout) or final_timeout <= 0:
            raise ConfigError(
                f"Invalid DIFY_TIMEOUT '{timeout_raw}': must be a positive number of seconds"
            )
    elif dify is not None:
        final_timeout = dify.timeout
    else:
        final_timeout = DEFAULT_TIMEOUT

    if final_insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )

    return Config(
        base_url=final_url,
        email=email.strip(),
        password=password,
        dsl_directory=Path(final_dsl_dir).expanduser().resolve(),
        app_map_file=Path(final_app_map).expanduser().resolve(),
        dry_run=dry_run,
        mode=final_mode,
        force_direction=final_force,
        verbose=final_verbose,
        insecure=final_insecure,
        timeout=final_timeout,
    )
