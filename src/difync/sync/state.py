"""App map persistence layer.

Manages the JSON file (``app_map.json`` by default) that pairs each local
DSL file with a Dify app ID::

    { "apps": [ { "filename": "my-flow.yaml", "app_id": "app-xxxx" } ] }

Key design choices:

* **Never created implicitly** -- ``load()`` raises
  ``MappingNotFoundError`` when the file is missing; only ``difync init``
  writes a fresh map (``save(create_parents=True)``).
* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from difync.errors import (
    MappingDecodeError,
    MappingNotFoundError,
    MappingPersistError,
)
from difync.sync.models import AppMap

logger = logging.getLogger(__name__)


class MappingStore:
    """Load and save the app map file.

    Args:
        path: Path to the app map JSON file.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        """Return ``True`` if the app map file is present."""
        return self._path.is_file()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> AppMap:
        """Load the app map from disk.

        Returns:
            The parsed ``AppMap``.

        Raises:
            MappingNotFoundError: The file does not exist.
            MappingDecodeError: The file is not valid JSON or does not match
                the app map schema.
        """
        if not self._path.exists():
            raise MappingNotFoundError(str(self._path))

        try:
            with open(self._path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MappingDecodeError(str(self._path), str(exc)) from exc

        try:
            app_map = AppMap.model_validate(data)
        except ValidationError as exc:
            raise MappingDecodeError(str(self._path), str(exc)) from exc

        logger.debug(
            "Loaded app map %s with %d entries",
            self._path,
            len(app_map.apps),
        )
        return app_map

    def save(self, app_map: AppMap, create_parents: bool = False) -> None:
        """Persist the app map to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.

        Args:
            app_map: The map to write.
            create_parents: Create missing parent directories.  Only
                initialization passes ``True``; a sync run never creates
                directories.

        Raises:
            MappingPersistError: The file could not be written.
        """
        directory = self._path.parent
        try:
            if create_parents:
                directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(directory),
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
        except OSError as exc:
            raise MappingPersistError(str(self._path), str(exc)) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(
                    app_map.model_dump(mode="json"),
                    fh,
                    indent=2,
                    ensure_ascii=False,
                )
                fh.write("\n")
            os.replace(tmp_path, self._path)
        except BaseException as exc:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise MappingPersistError(
                    str(self._path), str(exc)
                ) from exc
            raise

        logger.debug(
            "Saved app map %s with %d entries",
            self._path,
            len(app_map.apps),
        )
