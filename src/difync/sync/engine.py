"""Core sync engine that reconciles local DSL files with Dify apps.

The ``SyncEngine`` ties together the app map store, the filename rules and
the Dify client into a complete reconciliation run.  ``sync_all()``:

1. Loads the app map (a missing or malformed map aborts the run).
2. For each entry, in map order, checks whether the app still exists.
3. Removes local files of deleted apps and drops their entries.
4. Renames local files whose app was renamed remotely (no content sync for
   that entry in the same run).
5. Otherwise runs the per-pair decision (``sync_app()``): download, upload,
   or nothing, based on ``updated_at`` versus the local mtime.
6. Saves the app map if any entry was renamed or removed.
7. Returns ``SyncStats`` and the updated map.

Error handling is per-entry: a single failure does not abort the run.
The dry-run flag is checked before every write, never before a read.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from difync import file_handler
from difync.config import Config, ForceDirection, SyncMode
from difync.errors import (
    DifyAPIError,
    InitError,
    LocalIOError,
    MappingPersistError,
)
from difync.sync.filenames import filename_for_app
from difync.sync.models import (
    AppMap,
    AppMapping,
    RemoteApp,
    SyncAction,
    SyncResult,
    SyncStats,
)
from difync.sync.state import MappingStore
from difync.sync.timestamps import normalize_timestamp

if TYPE_CHECKING:
    from difync.core.client import DifyClient

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Reconcile the DSL directory with Dify according to the app map.

    Args:
        client: Logged-in ``DifyClient`` (or any object with the same
            methods).
        config: Run configuration.
        store: App map store; defaults to ``MappingStore(config.app_map_file)``.
    """

    def __init__(
        self,
        client: DifyClient,
        config: Config,
        store: MappingStore | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.store = store or MappingStore(config.app_map_file)

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    def _local_path(self, filename: str) -> Path:
        return self.config.dsl_directory / filename

    def _result(
        self,
        app: AppMapping,
        action: SyncAction,
        success: bool,
        error: str | None = None,
    ) -> SyncResult:
        return SyncResult(
            filename=app.filename,
            app_id=app.app_id,
            action=action,
            success=success,
            error=error,
            timestamp=_now(),
        )

    # ------------------------------------------------------------------
    # App map
    # ------------------------------------------------------------------

    def load_app_map(self) -> AppMap:
        """Load the app map; raises ``MappingLoadError`` subclasses."""
        return self.store.load()

    def initialize(self, overwrite: bool = False) -> AppMap:
        """Create the app map from the list of apps in the Dify account.

        Each app gets a sanitized, deduplicated ``.yaml`` filename; its DSL
        is downloaded when the file does not exist yet.  Download failures
        are logged and do not abort initialization.

        Args:
            overwrite: Replace an existing app map file.

        Returns:
            The new ``AppMap`` (also written to disk unless dry run).

        Raises:
            InitError: The map already exists, the app list could not be
                fetched, or the account has no apps.
            MappingPersistError: The map could not be written.
        """
        if self.store.exists() and not overwrite:
            raise InitError(
                f"App map file already exists at {self.store.path}. "
                "Use --overwrite to replace it."
            )

        try:
            apps = self.client.list_apps()
        except DifyAPIError as exc:
            raise InitError(f"failed to get app list from API: {exc}") from exc

        if not apps:
            raise InitError("no applications found in Dify account")

        dsl_dir = self.config.dsl_directory
        if not self.dry_run:
            try:
                dsl_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise InitError(
                    f"failed to create DSL directory {dsl_dir}: {exc}"
                ) from exc

        used: set[str] = set()
        mappings: list[AppMapping] = []
        for remote in apps:
            filename = filename_for_app(
                remote.name,
                used,
                lambda name: self._local_path(name).exists(),
            )
            used.add(filename)
            mappings.append(AppMapping(filename=filename, app_id=remote.id))
            logger.info(
                "Mapped app %r (ID: %s) to %s", remote.name, remote.id, filename
            )

            local_path = self._local_path(filename)
            if local_path.exists():
                continue
            try:
                dsl = self.client.export_dsl(remote.id)
            except DifyAPIError as exc:
                logger.warning(
                    "Failed to download DSL for %s: %s", remote.name, exc
                )
                continue
            if self.dry_run:
                logger.info("Dry run: would write %s", local_path)
                continue
            try:
                file_handler.write_dsl(local_path, dsl)
            except LocalIOError as exc:
                logger.warning(
                    "Failed to write DSL file for %s: %s", remote.name, exc
                )

        app_map = AppMap(apps=mappings)
        if self.dry_run:
            logger.info(
                "Dry run: would create app map file at %s with %d applications",
                self.store.path,
                len(mappings),
            )
        else:
            self.store.save(app_map, create_parents=True)
            logger.info(
                "Created app map file at %s with %d applications",
                self.store.path,
                len(mappings),
            )
        return app_map

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def sync_all(self) -> tuple[SyncStats, AppMap]:
        """Run one reconciliation pass over the whole app map.

        Returns:
            ``(stats, updated_app_map)``.  The updated map reflects renames
            and deletions even in dry-run mode, but is only written to disk
            outside dry-run mode.

        Raises:
            MappingLoadError: The app map is missing or malformed.
        """
        app_map = self.load_app_map()
        started_at = _now()

        working: list[AppMapping] = list(app_map.apps)
        results: list[SyncResult] = []
        counts = {
            "downloads": 0,
            "uploads": 0,
            "no_action": 0,
            "errors": 0,
            "renamed": 0,
            "deleted": 0,
        }

        for app in app_map.apps:
            result = self._reconcile_entry(app, working)
            results.append(result)
            self._fold(result, counts)

            if result.success:
                logger.info(
                    "Synced %s (app_id: %s): %s",
                    result.filename,
                    result.app_id,
                    result.action.value,
                )
            else:
                logger.error(
                    "Failed to sync %s (app_id: %s): %s",
                    result.filename,
                    result.app_id,
                    result.error,
                )

        updated = AppMap(apps=working)
        persist_error = None
        if (counts["renamed"] or counts["deleted"]) and not self.dry_run:
            try:
                self.store.save(updated)
            except MappingPersistError as exc:
                logger.error("%s", exc)
                persist_error = str(exc)

        ended_at = _now()
        stats = SyncStats(
            total=len(app_map.apps),
            dry_run=self.dry_run,
            started_at=started_at,
            ended_at=ended_at,
            duration=ended_at - started_at,
            results=results,
            persist_error=persist_error,
            **counts,
        )
        return stats, updated

    @staticmethod
    def _fold(result: SyncResult, counts: dict[str, int]) -> None:
        """Add one result to the run counters."""
        if not result.success:
            counts["errors"] += 1
        elif result.action == SyncAction.DOWNLOAD:
            counts["downloads"] += 1
        elif result.action == SyncAction.UPLOAD:
            counts["uploads"] += 1
        elif result.action == SyncAction.DELETE:
            counts["deleted"] += 1
            counts["downloads"] += 1
        elif result.action == SyncAction.RENAME:
            counts["renamed"] += 1
        else:
            counts["no_action"] += 1

    def _reconcile_entry(
        self, app: AppMapping, working: list[AppMapping]
    ) -> SyncResult:
        """Handle deletion, rename, or content sync for one entry.

        Mutates *working* when the entry is removed or renamed.
        """
        try:
            exists = self.client.app_exists(app.app_id)
        except DifyAPIError as exc:
            return self._result(
                app,
                SyncAction.ERROR,
                False,
                f"failed to check app existence: {exc}",
            )

        if not exists:
            return self._handle_deletion(app, working)

        try:
            remote = self.client.get_app_info(app.app_id)
        except DifyAPIError as exc:
            return self._result(
                app, SyncAction.ERROR, False, f"failed to get app info: {exc}"
            )

        reserved = {m.filename for m in working if m.app_id != app.app_id}
        expected = filename_for_app(
            remote.name,
            reserved,
            lambda name: name != app.filename
            and self._local_path(name).exists(),
        )
        if expected != app.filename:
            return self._handle_rename(app, expected, working)

        return self.sync_app(app, remote=remote)

    def _handle_deletion(
        self, app: AppMapping, working: list[AppMapping]
    ) -> SyncResult:
        """Remove the local file of an app that no longer exists remotely."""
        local_path = self._local_path(app.filename)
        if self.dry_run:
            logger.info(
                "Dry run: would remove %s (app %s deleted)",
                local_path,
                app.app_id,
            )
        else:
            try:
                file_handler.remove_dsl(local_path)
            except LocalIOError as exc:
                return self._result(app, SyncAction.DELETE, False, str(exc))
            logger.info(
                "Removed %s (app %s deleted)", local_path, app.app_id
            )

        working.remove(app)
        return self._result(app, SyncAction.DELETE, True)

    def _handle_rename(
        self, app: AppMapping, new_filename: str, working: list[AppMapping]
    ) -> SyncResult:
        """Rename the local file to follow a remote app rename."""
        src = self._local_path(app.filename)
        dst = self._local_path(new_filename)
        if self.dry_run:
            logger.info("Dry run: would rename %s to %s", src, dst)
        else:
            try:
                file_handler.rename_dsl(src, dst)
            except LocalIOError as exc:
                return self._result(app, SyncAction.RENAME, False, str(exc))
            logger.info("Renamed %s to %s", src, dst)

        working[working.index(app)] = app.model_copy(
            update={"filename": new_filename}
        )
        return SyncResult(
            filename=new_filename,
            app_id=app.app_id,
            action=SyncAction.RENAME,
            success=True,
            timestamp=_now(),
        )

    # ------------------------------------------------------------------
    # Per-pair decision
    # ------------------------------------------------------------------

    def sync_app(
        self, app: AppMapping, remote: RemoteApp | None = None
    ) -> SyncResult:
        """Decide and execute the sync action for one mapped pair.

        Args:
            app: The mapping entry.
            remote: Already-fetched app info.  When given, the existence
                check and the app info fetch are skipped.

        Returns:
            A ``SyncResult``.  Failures are reported in the result, never
            raised.
        """
        local_path = self._local_path(app.filename)
        try:
            local_mtime = file_handler.local_mtime(local_path)
        except LocalIOError as exc:
            return self._result(
                app,
                SyncAction.ERROR,
                False,
                f"failed to stat local file: {exc}",
            )

        if remote is None:
            try:
                exists = self.client.app_exists(app.app_id)
            except DifyAPIError as exc:
                return self._result(
                    app,
                    SyncAction.ERROR,
                    False,
                    f"failed to check app existence: {exc}",
                )
            if not exists:
                # Deletion is handled by sync_all(), not here.
                logger.info(
                    "App %s no longer exists, skipping %s",
                    app.app_id,
                    app.filename,
                )
                return self._result(app, SyncAction.NONE, True)

            try:
                remote = self.client.get_app_info(app.app_id)
            except DifyAPIError as exc:
                return self._result(
                    app,
                    SyncAction.ERROR,
                    False,
                    f"failed to get app info: {exc}",
                )

        action = self.decide(local_mtime, remote.updated_at)
        logger.debug(
            "Decision for %s: local=%s remote=%r -> %s",
            app.filename,
            local_mtime.isoformat(),
            remote.updated_at,
            action.value,
        )

        if action == SyncAction.DOWNLOAD:
            return self._download(app, local_path)
        if action == SyncAction.UPLOAD:
            return self._upload(app, local_path)
        return self._result(app, SyncAction.NONE, True)

    def decide(self, local_mtime: datetime, raw_updated_at) -> SyncAction:
        """Pick DOWNLOAD, UPLOAD or NONE for one pair.

        A forced direction wins outright.  Otherwise an unusable remote
        timestamp yields NONE, and only a strictly newer side triggers a
        transfer, so equal times never sync.
        """
        force = self.config.force_direction
        if force == ForceDirection.UPLOAD:
            return SyncAction.UPLOAD
        if force == ForceDirection.DOWNLOAD:
            return SyncAction.DOWNLOAD

        remote_mtime = normalize_timestamp(raw_updated_at)
        if remote_mtime is None:
            return SyncAction.NONE

        if remote_mtime > local_mtime:
            return SyncAction.DOWNLOAD
        if (
            self.config.mode == SyncMode.BIDIRECTIONAL
            and local_mtime > remote_mtime
        ):
            return SyncAction.UPLOAD
        return SyncAction.NONE

    def _download(self, app: AppMapping, local_path: Path) -> SyncResult:
        """Download the DSL from Dify into the local file."""
        try:
            dsl = self.client.export_dsl(app.app_id)
        except DifyAPIError as exc:
            return self._result(
                app,
                SyncAction.DOWNLOAD,
                False,
                f"failed to get DSL from Dify: {exc}",
            )

        if self.dry_run:
            return self._result(app, SyncAction.DOWNLOAD, True)

        try:
            file_handler.write_dsl(local_path, dsl)
        except LocalIOError as exc:
            return self._result(
                app,
                SyncAction.DOWNLOAD,
                False,
                f"failed to write DSL to local file: {exc}",
            )
        return self._result(app, SyncAction.DOWNLOAD, True)

    def _upload(self, app: AppMapping, local_path: Path) -> SyncResult:
        """Upload the local DSL file to Dify."""
        try:
            dsl = file_handler.read_dsl(local_path)
        except LocalIOError as exc:
            return self._result(
                app,
                SyncAction.UPLOAD,
                False,
                f"failed to read local DSL file: {exc}",
            )

        if self.dry_run:
            return self._result(app, SyncAction.UPLOAD, True)

        try:
            self.client.import_dsl(app.app_id, dsl)
        except DifyAPIError as exc:
            return self._result(
                app,
                SyncAction.UPLOAD,
                False,
                f"failed to update DSL in Dify: {exc}",
            )
        return self._result(app, SyncAction.UPLOAD, True)
