"""Filesystem port used by every store.

Stores talk to disk only through a ``FileSystem`` so tests can swap in
an in-memory implementation. ``LocalFileSystem`` is the real one: every
write lands in a sibling temporary file first and is then renamed over
the target, so readers see either the old or the new content.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Protocol, runtime_checkable

from anchored_notes.exceptions import ErrorCode, StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class FileSystem(Protocol):
    """The few file operations the stores need."""

    def exists(self, path: Path) -> bool:
        ...

    def is_dir(self, path: Path) -> bool:
        ...

    def read_text(self, path: Path) -> str:
        """Read a UTF-8 file. Raises OSError if it cannot be read."""
        ...

    def write_text_atomic(self, path: Path, content: str) -> None:
        """Replace ``path`` with ``content`` atomically, creating parents."""
        ...

    def delete_file(self, path: Path) -> bool:
        """Delete a file. Returns False when it did not exist."""
        ...

    def remove_dir_if_empty(self, path: Path) -> bool:
        ...

    def list_files(self, path: Path) -> List[Path]:
        """All regular files beneath ``path``, recursively, sorted."""
        ...


class LocalFileSystem:
    """``FileSystem`` backed by the real disk."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def read_text(self, path: Path) -> str:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def write_text_atomic(self, path: Path, content: str) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(
                f"Failed to write {path.name}",
                operation="write",
                path=str(path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

    def delete_file(self, path: Path) -> bool:
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(
                f"Failed to delete {path.name}",
                operation="delete",
                path=str(path),
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e
        return True

    def remove_dir_if_empty(self, path: Path) -> bool:
        if not path.is_dir() or any(path.iterdir()):
            return False
        path.rmdir()
        return True

    def list_files(self, path: Path) -> List[Path]:
        if not path.is_dir():
            return []
        found = []
        for dirpath, _dirnames, filenames in os.walk(path):
            for name in filenames:
                found.append(Path(dirpath) / name)
        return sorted(found)
