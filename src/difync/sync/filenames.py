"""Filename generation for DSL files.

Converts Dify app names into filenames that are valid on Windows, macOS and
Linux while keeping non-Latin scripts (e.g. Japanese) intact.

Conversion rules:

- Any Unicode whitespace character -> ``_`` (one per character).
- ``/ \\ : * ? " < > |`` -> dropped.
- Everything else is kept as-is.
- An empty result falls back to ``"app"``.

Examples:
    - ``"My App"`` -> ``"My_App"``
    - ``"Test: App?"`` -> ``"Test_App"``
    - ``"日本語 アプリ"`` -> ``"日本語_アプリ"``

Deduplication appends ``_1``, ``_2``, ... before the extension until the name
is neither reserved in the current run nor present on disk.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection

logger = logging.getLogger(__name__)

INVALID_CHARS = frozenset('/\\:*?"<>|')
DEFAULT_BASENAME = "app"
DSL_EXTENSION = ".yaml"


def sanitize_filename(name: str) -> str:
    """Create a safe base filename (without extension) from an app name."""
    chars: list[str] = []
    for ch in name:
        if ch.isspace():
            chars.append("_")
        elif ch not in INVALID_CHARS:
            chars.append(ch)

    result = "".join(chars)
    if not result:
        return DEFAULT_BASENAME
    return result


def deduplicate_filename(
    base: str,
    reserved: Collection[str],
    exists: Callable[[str], bool],
    extension: str = DSL_EXTENSION,
) -> str:
    """Return the first free filename derived from *base*.

    Args:
        base: Sanitized base name (no extension).
        reserved: Filenames already claimed in this run.
        exists: Callback returning ``True`` when a filename is taken on disk.
        extension: Extension appended to every candidate.

    Returns:
        ``base + extension`` or ``base_<n> + extension`` for the smallest
        ``n >= 1`` that is neither reserved nor existing.
    """
    candidate = f"{base}{extension}"
    counter = 1
    while candidate in reserved or exists(candidate):
        logger.debug(
            "Filename %s already taken, trying suffix %d", candidate, counter
        )
        candidate = f"{base}_{counter}{extension}"
        counter += 1
    return candidate


def filename_for_app(
    name: str,
    reserved: Collection[str],
    exists: Callable[[str], bool],
) -> str:
    """Sanitize *name* and deduplicate it into a ``.yaml`` filename."""
    return deduplicate_filename(sanitize_filename(name), reserved, exists)
