"""Tests for the local filesystem adapter."""
import pytest

from anchored_notes.exceptions import ErrorCode, StorageError
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem
from tests.fakes import InMemoryFileSystem


@pytest.fixture
def fs():
    return LocalFileSystem()


class TestLocalFileSystem:
    """Tests for LocalFileSystem."""

    def test_protocol(self, fs):
        """Both implementations satisfy the protocol."""
        assert isinstance(fs, FileSystem)
        assert isinstance(InMemoryFileSystem(), FileSystem)

    def test_atomic_write_creates_parents(self, fs, tmp_path):
        """Writes create missing directories and leave no temp files."""
        target = tmp_path / "a" / "b" / "note.json"
        fs.write_text_atomic(target, "{}")
        assert fs.read_text(target) == "{}"
        assert [p.name for p in target.parent.iterdir()] == ["note.json"]

    def test_overwrite(self, fs, tmp_path):
        """A second write replaces the content."""
        target = tmp_path / "config.json"
        fs.write_text_atomic(target, "old")
        fs.write_text_atomic(target, "new")
        assert fs.read_text(target) == "new"

    def test_write_failure(self, fs, tmp_path):
        """OS errors surface as StorageError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        with pytest.raises(StorageError) as exc_info:
            fs.write_text_atomic(blocker / "note.json", "{}")
        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED

    def test_delete(self, fs, tmp_path):
        """Deleting a missing file reports False."""
        target = tmp_path / "x.txt"
        target.write_text("x")
        assert fs.delete_file(target) is True
        assert fs.delete_file(target) is False

    def test_remove_dir_if_empty(self, fs, tmp_path):
        """Only empty directories are removed."""
        full = tmp_path / "full"
        full.mkdir()
        (full / "x").write_text("x")
        empty = tmp_path / "empty"
        empty.mkdir()
        assert fs.remove_dir_if_empty(full) is False
        assert fs.remove_dir_if_empty(empty) is True
        assert not empty.exists()

    def test_list_files(self, fs, tmp_path):
        """Files are listed recursively and sorted."""
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "2.json").write_text("")
        (tmp_path / "a.json").write_text("")
        assert fs.list_files(tmp_path) == [tmp_path / "a.json", tmp_path / "b" / "2.json"]
        assert fs.list_files(tmp_path / "missing") == []
