"""File-per-note storage under ``notes/<YYYY>/<MM>/<id>.json``."""
import datetime
import json
import logging
from datetime import timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from anchored_notes.models.schema import Note, NoteWithPath
from anchored_notes.paths import RepositoryLayout
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem
from anchored_notes.utils import generate_note_id, now_ms

logger = logging.getLogger(__name__)


class NoteRepository:
    """Atomic CRUD over individual note files.

    Every lookup reads the whole notes directory; there is no index or
    cache. Files that cannot be parsed are skipped so one damaged note
    never hides the rest.

    The timestamp-collision check in ``create`` reads before it writes,
    so two truly simultaneous creates can still share a timestamp. Their
    ids stay distinct because of the random suffix.
    """

    def __init__(
        self,
        layout: RepositoryLayout,
        filesystem: Optional[FileSystem] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the note repository.

        Args:
            layout: Locations of the repository's data files.
            filesystem: Disk access; defaults to ``LocalFileSystem``.
            clock: Returns the current time in epoch milliseconds.
        """
        self.layout = layout
        self.fs = filesystem or LocalFileSystem()
        self.clock = clock

    def _note_path(self, note_id: str, timestamp: int) -> Path:
        created = datetime.datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
        return (
            self.layout.notes_dir
            / f"{created.year:04d}"
            / f"{created.month:02d}"
            / f"{note_id}.json"
        )

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.layout.root).as_posix()

    def _write(self, path: Path, note: Note) -> None:
        self.fs.write_text_atomic(path, json.dumps(note.to_json_dict(), indent=2))

    def read_all(self) -> List[NoteWithPath]:
        """Read every parseable note file, in path order."""
        results = []
        for path in self.fs.list_files(self.layout.notes_dir):
            if path.suffix != ".json":
                continue
            try:
                data = json.loads(self.fs.read_text(path))
                note = Note.model_validate(data)
            except (OSError, ValueError, PydanticValidationError) as e:
                logger.debug(f"Skipping unreadable note file {path}: {e}")
                continue
            results.append(NoteWithPath(note=note, path=self._relative(path)))
        return results

    def get_all_notes(self) -> List[Note]:
        return [item.note for item in self.read_all()]

    def create(
        self,
        content: str,
        anchors: List[str],
        tags: List[str],
        view_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        reviewed: bool = False,
        cell_coordinates: Optional[List[int]] = None,
    ) -> Note:
        """Persist a new note built from already validated, normalized input.

        Returns:
            The stored note, including its generated id and timestamp.
        """
        timestamp = self.clock()
        taken = {item.note.timestamp for item in self.read_all()}
        while timestamp in taken:
            timestamp += 1

        note = Note(
            id=generate_note_id(timestamp),
            content=content,
            anchors=list(anchors),
            tags=list(tags),
            metadata=dict(metadata or {}),
            timestamp=timestamp,
            reviewed=reviewed,
            view_id=view_id,
            cell_coordinates=tuple(cell_coordinates) if cell_coordinates else None,
        )
        self._write(self._note_path(note.id, timestamp), note)
        logger.debug(f"Created note {note.id} with {len(anchors)} anchor(s)")
        return note

    def save(self, item: NoteWithPath) -> None:
        """Rewrite an existing note in the file it was read from."""
        self._write(self.layout.root / item.path, item.note)

    def find(self, note_id: str) -> Optional[NoteWithPath]:
        for item in self.read_all():
            if item.note.id == note_id:
                return item
        return None

    def get(self, note_id: str) -> Optional[Note]:
        """Get a note by id, or None if no such note exists."""
        item = self.find(note_id)
        return item.note if item else None

    def delete(self, note_id: str) -> bool:
        """Delete a note by id.

        Returns:
            True if a note was removed, False if it did not exist.
        """
        item = self.find(note_id)
        if item is None:
            return False
        removed = self.fs.delete_file(self.layout.root / item.path)
        if removed:
            logger.info(f"Deleted note {note_id}")
        return removed

    def update_all(self, mutate: Callable[[Note], bool]) -> int:
        """Apply ``mutate`` to every note and rewrite the ones it changed.

        ``mutate`` edits the note in place and returns True when it made a
        change. This is a best-effort bulk pass: a failure part way leaves
        earlier rewrites in place.

        Returns:
            Number of notes rewritten.
        """
        modified = 0
        for item in self.read_all():
            if mutate(item.note):
                self.save(item)
                modified += 1
        return modified
