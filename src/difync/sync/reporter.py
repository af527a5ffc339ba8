"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-sync summary.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import SyncAction

if TYPE_CHECKING:
    from .models import SyncStats

_SECTION_TITLES: dict[SyncAction, str] = {
    SyncAction.DOWNLOAD: "Downloaded from Dify:",
    SyncAction.UPLOAD: "Uploaded to Dify:",
    SyncAction.RENAME: "Renamed (app renamed in Dify):",
    SyncAction.DELETE: "Removed (app deleted in Dify):",
}


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(stats: SyncStats) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    In-sync entries are summarised by count only to avoid excessive output.

    Args:
        stats: Statistics of the completed run.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Sync report"
    if stats.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {stats.started_at.isoformat()}")
    lines.append(f"Completed: {stats.ended_at.isoformat()}")
    lines.append("")

    succeeded = [r for r in stats.results if r.success]
    for action, title in _SECTION_TITLES.items():
        matching = [r for r in succeeded if r.action == action]
        if not matching:
            continue
        lines.append(title)
        for r in matching:
            lines.append(f"  {r.filename} ({r.app_id})")
        lines.append("")

    failed = [r for r in stats.results if not r.success]
    if failed:
        lines.append("Errors:")
        for r in failed:
            lines.append(f"  {r.filename} ({r.app_id}): {r.error}")
        lines.append("")

    if stats.persist_error:
        lines.append(f"App map not saved: {stats.persist_error}")
        lines.append("")

    lines.append(stats.summary())
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON report
# ------------------------------------------------------------------


def report_to_json(stats: SyncStats) -> dict:
    """Convert run statistics into a JSON-serialisable dict.

    Durations are expressed in seconds.
    """
    return {
        "dry_run": stats.dry_run,
        "started_at": stats.started_at.isoformat(),
        "ended_at": stats.ended_at.isoformat(),
        "duration_seconds": stats.duration.total_seconds(),
        "summary": {
            "total": stats.total,
            "downloads": stats.downloads,
            "uploads": stats.uploads,
            "renamed": stats.renamed,
            "deleted": stats.deleted,
            "no_action": stats.no_action,
            "errors": stats.errors,
        },
        "persist_error": stats.persist_error,
        "results": [
            {
                "filename": r.filename,
                "app_id": r.app_id,
                "action": r.action.value,
                "success": r.success,
                "error": r.error,
            }
            for r in stats.results
        ],
    }
