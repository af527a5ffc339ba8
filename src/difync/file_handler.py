"""File handler module: DSL file stat/read/write/rename/remove.

Thin wrappers over ``pathlib`` and ``os`` that translate ``OSError`` into
``LocalIOError`` so the sync engine can report a per-entry failure with the
operation and path in the message.  DSL content is handled as raw bytes;
it is written back exactly as the Dify export returned it.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from difync.errors import LocalIOError


def local_mtime(path: Path) -> datetime:
    """Return the modification time of *path* as a UTC datetime.

    Raises:
        LocalIOError: If the file cannot be stat'ed.
    """
    try:
        st = path.stat()
    except OSError as exc:
        raise LocalIOError("stat", str(path), exc.strerror or str(exc)) from exc
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)


def read_dsl(path: Path) -> bytes:
    """Read a DSL file as bytes.

    Raises:
        LocalIOError: If the file cannot be read.
    """
    try:
        return path.read_bytes()
    except OSError as exc:
        raise LocalIOError("read", str(path), exc.strerror or str(exc)) from exc


def write_dsl(path: Path, content: bytes) -> int:
    """Overwrite *path* with *content*.

    Returns:
        Number of bytes written.

    Raises:
        LocalIOError: If the file cannot be written.
    """
    try:
        return path.write_bytes(content)
    except OSError as exc:
        raise LocalIOError("write", str(path), exc.strerror or str(exc)) from exc


def rename_dsl(src: Path, dst: Path) -> None:
    """Rename *src* to *dst* within the DSL directory.

    Raises:
        LocalIOError: If the rename fails.
    """
    try:
        os.rename(src, dst)
    except OSError as exc:
        raise LocalIOError(
            "rename", f"{src} -> {dst}", exc.strerror or str(exc)
        ) from exc


def remove_dsl(path: Path, missing_ok: bool = True) -> bool:
    """Remove a DSL file.

    Args:
        path: File to remove.
        missing_ok: Treat an already-missing file as success.

    Returns:
        ``True`` if a file was removed, ``False`` if it was already gone.

    Raises:
        LocalIOError: If the file exists but cannot be removed.
    """
    try:
        path.unlink()
    except FileNotFoundError as exc:
        if missing_ok:
            return False
        raise LocalIOError("remove", str(path), exc.strerror or str(exc)) from exc
    except OSError as exc:
        raise LocalIOError("remove", str(path), exc.strerror or str(exc)) from exc
    return True
