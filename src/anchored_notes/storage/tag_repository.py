"""Repository for tag descriptions stored as ``tags/<tag>.md``."""
import logging
from pathlib import Path
from typing import Dict, Optional

from anchored_notes.exceptions import TagError
from anchored_notes.models.schema import validate_tag_name
from anchored_notes.paths import RepositoryLayout
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem

logger = logging.getLogger(__name__)

DESCRIPTION_SUFFIX = ".md"


class TagRepository:
    """Reads and writes one description file per tag.

    Only the description files live here. Propagating tag changes into
    notes is the job of ``TagService``.
    """

    def __init__(self, layout: RepositoryLayout, filesystem: Optional[FileSystem] = None):
        self.layout = layout
        self.fs = filesystem or LocalFileSystem()

    def _path(self, tag: str) -> Path:
        try:
            validate_tag_name(tag)
        except ValueError as e:
            raise TagError(str(e), tag_name=tag) from e
        return self.layout.tags_dir / f"{tag}{DESCRIPTION_SUFFIX}"

    def _existing_path(self, tag: str) -> Optional[Path]:
        """Description file for ``tag``, or None when the name cannot have one.

        Notes written before tag names were checked may carry such tags;
        lookups treat them as undescribed instead of failing.
        """
        try:
            validate_tag_name(tag)
        except ValueError:
            return None
        return self.layout.tags_dir / f"{tag}{DESCRIPTION_SUFFIX}"

    def get(self, tag: str) -> Optional[str]:
        """Description text for ``tag``, or None if it has none."""
        path = self._existing_path(tag)
        if path is None or not self.fs.exists(path):
            return None
        return self.fs.read_text(path).strip()

    def get_all(self) -> Dict[str, str]:
        """All tag descriptions keyed by tag name."""
        descriptions = {}
        for path in self.fs.list_files(self.layout.tags_dir):
            if path.parent != self.layout.tags_dir or path.suffix != DESCRIPTION_SUFFIX:
                continue
            try:
                descriptions[path.stem] = self.fs.read_text(path).strip()
            except OSError as e:
                logger.warning(f"Could not read tag description {path.name}: {e}")
        return descriptions

    def save(self, tag: str, description: str) -> None:
        self.fs.write_text_atomic(self._path(tag), description)
        logger.debug(f"Saved description for tag '{tag}'")

    def delete(self, tag: str) -> bool:
        """Remove the description file.

        The tags directory is removed as well once it is empty.

        Returns:
            True if a description existed.
        """
        path = self._existing_path(tag)
        if path is None:
            return False
        removed = self.fs.delete_file(path)
        if removed and self.fs.exists(self.layout.tags_dir):
            self.fs.remove_dir_if_empty(self.layout.tags_dir)
        return removed

    def exists(self, tag: str) -> bool:
        path = self._existing_path(tag)
        return path is not None and self.fs.exists(path)
