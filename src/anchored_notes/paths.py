"""Repository root discovery and anchor path normalization.

Anchors are stored as POSIX paths relative to the repository root, with
``"."`` standing for the root itself. Every helper here works on that
canonical form so the matcher and the coverage audit agree on what
"nested under" means.
"""
import logging
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from anchored_notes.exceptions import PathEscapesRepositoryError, RepositoryNotFoundError

logger = logging.getLogger(__name__)

GIT_MARKER = ".git"
ROOT = "."

PathLike = Union[str, os.PathLike]


def find_repository_root(start: PathLike) -> Path:
    """Walk upward from ``start`` to the nearest directory holding ``.git``.

    ``.git`` may be a directory or a file (worktrees and submodules use a
    file). A file path starts the search at its parent directory.

    Raises:
        RepositoryNotFoundError: If no ancestor carries the marker.
    """
    current = Path(start).resolve()
    if current.is_file():
        current = current.parent

    for candidate in (current, *current.parents):
        if (candidate / GIT_MARKER).exists():
            return candidate

    raise RepositoryNotFoundError(str(start))


def get_repository_name(root: PathLike) -> str:
    """Directory name of the repository root."""
    return Path(root).name


def normalize_relative(path: str) -> str:
    """Normalize an already root-relative path to canonical POSIX form.

    Backslashes become forward slashes, redundant separators and ``.``
    segments collapse, and trailing slashes go away. The result for the
    root itself is ``"."``. Applying this twice is a no-op.
    """
    cleaned = path.replace("\\", "/").strip()
    if not cleaned:
        return ROOT
    return posixpath.normpath(cleaned)


def _is_relative_prefix(value: str) -> bool:
    posix = value.replace("\\", "/")
    return posix in (".", "..") or posix.startswith("./") or posix.startswith("../")


def _contained_relpath(root: str, absolute: str) -> Optional[str]:
    """Relative path of ``absolute`` under ``root``, or None if outside."""
    try:
        rel = os.path.relpath(absolute, root)
    except ValueError:
        # Different drives on Windows
        return None
    rel = rel.replace(os.sep, "/")
    if rel == ".." or rel.startswith("../") or os.path.isabs(rel):
        return None
    return normalize_relative(rel)


def to_repo_relative(
    root: PathLike,
    value: PathLike,
    working_dir: Optional[PathLike] = None,
) -> str:
    """Convert an anchor input to a canonical root-relative path.

    Args:
        root: Canonical repository root.
        value: Absolute path, ``./`` or ``../`` prefixed path, or a path that
            is already relative to the root.
        working_dir: Directory that ``./`` and ``../`` inputs resolve against.
            Defaults to ``root``.

    Returns:
        Normalized POSIX path relative to ``root`` (``"."`` for the root).

    Raises:
        PathEscapesRepositoryError: If the path resolves outside ``root``.
    """
    root_str = os.path.normpath(os.fspath(root))
    raw = os.fspath(value)

    if os.path.isabs(raw):
        absolute = os.path.normpath(raw)
    elif _is_relative_prefix(raw):
        base = os.fspath(working_dir) if working_dir is not None else root_str
        absolute = os.path.normpath(os.path.join(base, raw))
    else:
        absolute = os.path.normpath(os.path.join(root_str, raw))

    rel = _contained_relpath(root_str, absolute)
    if rel is None and os.path.isabs(raw):
        # Symlinked locations such as /tmp -> /private/tmp
        rel = _contained_relpath(os.path.realpath(root_str), os.path.realpath(absolute))
    if rel is None:
        raise PathEscapesRepositoryError(raw, root_str)
    return rel


def is_within_repository(root: PathLike, value: PathLike, working_dir: Optional[PathLike] = None) -> bool:
    """True when ``value`` resolves to ``root`` or somewhere beneath it."""
    try:
        to_repo_relative(root, value, working_dir)
    except PathEscapesRepositoryError:
        return False
    return True


def is_same_or_nested(parent: str, child: str) -> bool:
    """True when ``child`` equals ``parent`` or lives beneath it.

    Both arguments must already be canonical root-relative paths. The root
    (``"."``) contains everything.
    """
    if parent == child or parent == ROOT:
        return True
    return child.startswith(parent + "/")


def is_related(anchor: str, query: str) -> bool:
    """Bidirectional ancestor test used by matching and coverage."""
    return is_same_or_nested(anchor, query) or is_same_or_nested(query, anchor)


def path_depth(relative: str) -> int:
    """Number of segments between the root and ``relative`` (root is 0)."""
    if relative == ROOT:
        return 0
    return len(relative.split("/"))


@dataclass(frozen=True)
class RepositoryLayout:
    """On-disk locations of everything stored for one repository."""

    root: Path
    data_dir: Path

    @classmethod
    def for_root(cls, root: PathLike, data_dir_name: str) -> "RepositoryLayout":
        root_path = Path(root)
        return cls(root=root_path, data_dir=root_path / data_dir_name)

    @property
    def config_file(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def notes_dir(self) -> Path:
        return self.data_dir / "notes"

    @property
    def tags_dir(self) -> Path:
        return self.data_dir / "tags"

    @property
    def views_dir(self) -> Path:
        return self.data_dir / "views"

    def absolute(self, relative: str) -> Path:
        """Absolute filesystem path for a root-relative anchor."""
        if relative == ROOT:
            return self.root
        return self.root.joinpath(*relative.split("/"))
