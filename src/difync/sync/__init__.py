"""DSL sync engine.

Public API for keeping a directory of Dify DSL files (YAML) in sync with
the apps of a Dify workspace.

Architecture
------------
Local files and remote apps are paired through a persisted app map
(``app_map.json``).  Each run walks the map in order and, per entry,
removes the local file of a deleted app, renames the local file of a
renamed app, or compares the app's ``updated_at`` with the file's mtime to
decide whether to download, upload, or do nothing.

Modules:

- ``engine``     -- ``SyncEngine``: initialization and reconciliation runs.
- ``state``      -- ``MappingStore``: load/save the app map JSON file.
- ``filenames``  -- app name to safe, deduplicated filename.
- ``timestamps`` -- ``normalize_timestamp()`` for ``updated_at`` values.
- ``models``     -- ``SyncAction``, ``AppMapping``, ``AppMap``,
  ``RemoteApp``, ``SyncResult``, ``SyncStats``: core data contracts.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from difync.config import load_config
    from difync.core.client import DifyClient
    from difync.sync import SyncEngine, format_sync_report

    config = load_config(dry_run=True)
    client = DifyClient(config)
    client.login()

    engine = SyncEngine(client, config)
    stats, app_map = engine.sync_all()
    print(format_sync_report(stats))
"""

from .engine import SyncEngine
from .filenames import deduplicate_filename, sanitize_filename
from .models import (
    AppMap,
    AppMapping,
    RemoteApp,
    SyncAction,
    SyncResult,
    SyncStats,
)
from .reporter import format_sync_report, report_to_json
from .state import MappingStore
from .timestamps import normalize_timestamp

__all__ = [
    "AppMap",
    "AppMapping",
    "MappingStore",
    "RemoteApp",
    "SyncAction",
    "SyncEngine",
    "SyncResult",
    "SyncStats",
    "deduplicate_filename",
    "format_sync_report",
    "normalize_timestamp",
    "report_to_json",
    "sanitize_filename",
]
