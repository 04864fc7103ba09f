"""Common test fixtures for anchored notes."""

from pathlib import Path

import pytest

from anchored_notes.config import config
from anchored_notes.observability import MetricsCollector
from anchored_notes.paths import RepositoryLayout
from anchored_notes.services.note_service import NoteService
from anchored_notes.storage.config_store import ConfigurationStore
from anchored_notes.storage.note_repository import NoteRepository
from anchored_notes.storage.tag_repository import TagRepository
from tests.fakes import FakeClock, InMemoryFileSystem

DATA_DIR = ".anchored-notes"

# Root used by in-memory store tests; nothing is created on disk there
VIRTUAL_ROOT = Path("/virtual/repo")


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    """Pin process settings so local .env files cannot leak into tests."""
    monkeypatch.setattr(config, "data_dir_name", DATA_DIR)
    monkeypatch.setattr(config, "ignore_file_name", ".anchoredignore")
    monkeypatch.setattr(config, "max_stale_to_report", 50)
    yield config


@pytest.fixture(autouse=True)
def fresh_metrics(monkeypatch):
    """Give every test its own metrics collector."""
    collector = MetricsCollector()
    monkeypatch.setattr("anchored_notes.observability.metrics", collector)
    yield collector


@pytest.fixture
def repo_root(tmp_path):
    """A git-marked repository with a few source files."""
    root = tmp_path / "repo"
    (root / ".git").mkdir(parents=True)
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text("print('app')\n")
    (root / "src" / "util.py").write_text("VALUE = 1\n")
    (root / "docs").mkdir()
    (root / "docs" / "guide.md").write_text("# Guide\n")
    (root / "README.md").write_text("# Repo\n")
    return root.resolve()


@pytest.fixture
def note_service(repo_root):
    """A NoteService bound to ``repo_root`` on the real filesystem."""
    return NoteService(repo_root)


@pytest.fixture
def memory_fs():
    return InMemoryFileSystem()


@pytest.fixture
def layout():
    return RepositoryLayout.for_root(VIRTUAL_ROOT, DATA_DIR)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def note_repository(layout, memory_fs, clock):
    """A note repository over the in-memory filesystem."""
    return NoteRepository(layout, memory_fs, clock=clock)


@pytest.fixture
def config_store(layout, memory_fs):
    return ConfigurationStore(layout, memory_fs)


@pytest.fixture
def tag_repository(layout, memory_fs):
    return TagRepository(layout, memory_fs)
