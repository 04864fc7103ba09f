"""Storage layer for anchored notes."""

from anchored_notes.storage.config_store import ConfigurationStore
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem
from anchored_notes.storage.note_repository import NoteRepository
from anchored_notes.storage.tag_repository import TagRepository
from anchored_notes.storage.view_repository import ViewRepository

__all__ = [
    "ConfigurationStore",
    "FileSystem",
    "LocalFileSystem",
    "NoteRepository",
    "TagRepository",
    "ViewRepository",
]
