"""Pydantic models for the DSL sync engine.

Defines the core data contracts used across all sync modules:

- ``SyncAction``: Enum of possible outcomes for one mapped pair.
- ``AppMapping``: One entry of the app map (local file <-> Dify app).
- ``AppMap``: The persisted, ordered list of mappings.
- ``RemoteApp``: App metadata as returned by the Dify API.
- ``SyncResult``: Outcome of syncing one pair.
- ``SyncStats``: Aggregate statistics for a full sync run.

All models except ``AppMap`` are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class SyncAction(str, Enum):
    """Possible outcomes for a file/app pair."""

    NONE = "none"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    ERROR = "error"
    RENAME = "rename"
    DELETE = "delete"


class AppMapping(BaseModel):
    """A single mapping between a local DSL file and a Dify app.

    Attributes:
        filename: DSL filename relative to the DSL directory.
        app_id: Dify application ID.
    """

    filename: str
    app_id: str

    model_config = {"frozen": True}


class AppMap(BaseModel):
    """Ordered collection of app mappings, as stored in ``app_map.json``.

    Filenames and app IDs must each be unique within the map.
    """

    apps: list[AppMapping] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique(self) -> AppMap:
        filenames = [app.filename for app in self.apps]
        if len(filenames) != len(set(filenames)):
            raise ValueError("duplicate filename in app map")
        app_ids = [app.app_id for app in self.apps]
        if len(app_ids) != len(set(app_ids)):
            raise ValueError("duplicate app_id in app map")
        return self


class RemoteApp(BaseModel):
    """Basic information about a Dify application.

    ``updated_at`` is kept exactly as the API returned it: the field has
    been a string, an integer and a float across Dify releases, and may be
    missing altogether.
    """

    id: str = ""
    name: str = ""
    updated_at: Any = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of syncing one file/app pair.

    Attributes:
        filename: DSL filename relative to the DSL directory.
        app_id: Dify application ID.
        action: Action that was taken (or attempted).
        success: Whether the action succeeded.
        error: Error message if the action failed.
        timestamp: When the result was produced.
    """

    filename: str
    app_id: str
    action: SyncAction
    success: bool = False
    error: str | None = None
    timestamp: datetime

    model_config = {"frozen": True}


class SyncStats(BaseModel):
    """Aggregate statistics for one reconciliation run.

    Remote deletions are counted both in ``deleted`` and in ``downloads``:
    removing the local file is a downward sync of remote state.
    """

    total: int = 0
    downloads: int = 0
    uploads: int = 0
    no_action: int = 0
    errors: int = 0
    renamed: int = 0
    deleted: int = 0
    dry_run: bool = False
    started_at: datetime
    ended_at: datetime
    duration: timedelta
    results: list[SyncResult] = Field(default_factory=list)
    persist_error: str | None = None

    model_config = {"frozen": True}

    @property
    def failed(self) -> bool:
        """True when any entry failed or the app map could not be saved."""
        return self.errors > 0 or self.persist_error is not None

    def summary(self) -> str:
        """Format a short human-readable summary of the run."""
        lines = [
            "Sync summary" + (" (dry run)" if self.dry_run else "") + ":",
            f"  Total apps:          {self.total}",
            f"  Downloads:           {self.downloads}",
            f"  Uploads:             {self.uploads}",
            f"  Renamed:             {self.renamed}",
            f"  Deleted:             {self.deleted}",
            f"  No action (in sync): {self.no_action}",
            f"  Errors:              {self.errors}",
            f"  Duration:            {self.duration}",
        ]
        return "\n".join(lines)
