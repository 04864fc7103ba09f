"""Tests for file-per-note storage."""
import json
import re

import pytest

from anchored_notes.exceptions import StorageError
from anchored_notes.storage.note_repository import NoteRepository
from tests.fakes import FakeClock

# 2023-11-14T22:13:20Z
TS = 1_700_000_000_000


def create(repo, content="Cache warms on boot", anchors=("src/cache.py",), **kwargs):
    kwargs.setdefault("tags", ["perf"])
    kwargs.setdefault("view_id", "main")
    return repo.create(content=content, anchors=list(anchors), **kwargs)


class TestCreate:
    """Tests for creating notes."""

    def test_id_format(self, note_repository):
        """Ids are note-<ms>-<9 base 36 chars>."""
        note = create(note_repository)
        assert re.fullmatch(rf"note-{TS}-[0-9a-z]{{9}}", note.id)
        assert note.timestamp == TS

    def test_sharded_by_utc_month(self, note_repository, memory_fs, layout):
        """Files land under notes/<YYYY>/<MM>/<id>.json."""
        note = create(note_repository)
        expected = layout.notes_dir / "2023" / "11" / f"{note.id}.json"
        assert memory_fs.exists(expected)

    def test_on_disk_format(self, note_repository, memory_fs, layout):
        """The file uses the on-disk key names."""
        note = create(note_repository, cell_coordinates=[2, 1])
        path = layout.notes_dir / "2023" / "11" / f"{note.id}.json"
        data = json.loads(memory_fs.read_text(path))
        assert data["note"] == "Cache warms on boot"
        assert data["codebaseViewId"] == "main"
        assert data["cellCoordinates"] == [2, 1]
        assert data["reviewed"] is False

    def test_timestamp_collision_bumped(self, note_repository):
        """Notes created in the same millisecond get distinct timestamps."""
        stamps = [create(note_repository).timestamp for _ in range(3)]
        assert stamps == [TS, TS + 1, TS + 2]

    def test_distinct_timestamps_untouched(self, layout, memory_fs):
        """A free timestamp is used as is."""
        repo = NoteRepository(layout, memory_fs, clock=FakeClock(ticks=[TS, TS + 50]))
        first = create(repo)
        second = create(repo)
        assert (first.timestamp, second.timestamp) == (TS, TS + 50)

    def test_write_failure_propagates(self, note_repository, memory_fs):
        """Storage errors reach the caller and nothing is stored."""
        memory_fs.fail_writes = True
        with pytest.raises(StorageError):
            create(note_repository)
        assert note_repository.read_all() == []


class TestRead:
    """Tests for reading notes back."""

    def test_round_trip(self, note_repository):
        """A created note reads back equal."""
        note = create(note_repository, metadata={"source": "review"})
        assert note_repository.get(note.id) == note

    def test_missing_note(self, note_repository):
        """Unknown ids return None."""
        assert note_repository.get("note-1-missing") is None

    def test_corrupt_files_skipped(self, note_repository, memory_fs, layout):
        """Unparseable or invalid files do not hide the others."""
        good = create(note_repository)
        shard = layout.notes_dir / "2023" / "11"
        memory_fs.write_text_atomic(shard / "broken.json", "{not json")
        memory_fs.write_text_atomic(shard / "invalid.json", json.dumps({"id": "x"}))
        memory_fs.write_text_atomic(shard / "notes.txt", "not a note")
        assert [n.id for n in note_repository.get_all_notes()] == [good.id]

    def test_read_all_reports_paths(self, note_repository):
        """Each note carries the root-relative path of its file."""
        note = create(note_repository)
        (item,) = note_repository.read_all()
        assert item.path == f".anchored-notes/notes/2023/11/{note.id}.json"

    def test_empty_repository(self, note_repository):
        """No notes directory means no notes."""
        assert note_repository.read_all() == []


class TestMutations:
    """Tests for delete, save and bulk updates."""

    def test_delete(self, note_repository):
        """Delete reports whether a note was removed."""
        note = create(note_repository)
        assert note_repository.delete(note.id) is True
        assert note_repository.get(note.id) is None
        assert note_repository.delete(note.id) is False

    def test_save_rewrites_same_file(self, note_repository, memory_fs):
        """Saving keeps the note in the file it came from."""
        create(note_repository)
        item = note_repository.read_all()[0]
        item.note.reviewed = True
        note_repository.save(item)
        (again,) = note_repository.read_all()
        assert again.path == item.path
        assert again.note.reviewed is True

    def test_update_all_counts_changes(self, note_repository):
        """Only notes the mutation changed are rewritten and counted."""
        create(note_repository, tags=["perf"])
        create(note_repository, tags=["docs"])
        create(note_repository, tags=["perf", "docs"])

        def drop_perf(note):
            if "perf" not in note.tags:
                return False
            note.tags = [t for t in note.tags if t != "perf"]
            return True

        assert note_repository.update_all(drop_perf) == 2
        assert all("perf" not in n.tags for n in note_repository.get_all_notes())
