"""YAML config file discovery for difync.

Looks for ``config.yml`` files in a few conventional places, reads the
``dify``, ``sync`` and ``logging`` sections from each, and merges them with
the project file winning over the global one.  ``${VAR}`` and
``${VAR:-default}`` in string values are expanded from the environment, so
secrets can stay out of the file::

    dify:
      url: https://dify.example.com
      email: ops@example.com
      password: ${DIFY_PASSWORD}
    sync:
      dsl_directory: flows

The returned dict is validated by ``difync.config_schema.build_config()``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SECTIONS = ("dify", "sync", "logging")

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when no
    default is given.  A ``${`` without a closing brace is kept literally.
    """

    def _expand(match: re.Match) -> str:
        current = os.environ.get(match.group("name"))
        if current:
            return current
        return match.group("default") or ""

    return _ENV_REF.sub(_expand, value)


def _expand_section(section: dict[str, Any]) -> dict[str, Any]:
    return {
        key: interpolate_env_vars(val) if isinstance(val, str) else val
        for key, val in section.items()
    }


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Candidates:
        1. ``$DIFYNC_CONFIG``
        2. ``./.difync/config.yml``
        3. ``./.difync/config.yaml``
        4. ``~/.config/difync/config.yml``
    """
    candidates: list[Path] = []

    explicit = os.environ.get("DIFYNC_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project_dir = Path.cwd() / ".difync"
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "difync" / "config.yml")

    return [path for path in candidates if path.is_file()]


def read_config_file(path: Path) -> dict[str, dict[str, Any]]:
    """Read the known sections from one YAML config file.

    Unknown top-level keys are logged and ignored.  A file whose root is not
    a mapping contributes nothing.

    Raises:
        yaml.YAMLError: The file is not valid YAML.
        ValueError: A known section is not a mapping.
    """
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring config file %s: top level is %s, not a mapping",
            path,
            type(data).__name__,
        )
        return {}

    sections: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        if key not in SECTIONS:
            logger.warning("Ignoring unknown section %r in %s", key, path)
            continue
        if value is None:
            continue
        if not isinstance(value, dict):
            raise ValueError(
                f"Section '{key}' in {path} must be a mapping, "
                f"got {type(value).__name__}"
            )
        sections[key] = value
    return sections


def load_hierarchical_config() -> dict[str, Any]:
    """Merge all discovered config files into one dict of sections.

    A section defined in a higher-precedence file replaces the same section
    from lower-precedence files as a whole.  Environment references are
    expanded after the merge.  Returns ``{}`` when no file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No difync config file found")
        return {}

    merged: dict[str, dict[str, Any]] = {}
    for path in reversed(paths):
        logger.debug("Reading config file %s", path)
        merged.update(read_config_file(path))

    return {name: _expand_section(section) for name, section in merged.items()}
