"""Read-only access to codebase views stored as ``views/<id>.json``."""
import json
import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from anchored_notes.models.schema import CodebaseView
from anchored_notes.paths import RepositoryLayout
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem

logger = logging.getLogger(__name__)


class ViewRepository:
    """Looks up view documents written by the view editor.

    Views are never created or modified here.
    """

    def __init__(self, layout: RepositoryLayout, filesystem: Optional[FileSystem] = None):
        self.layout = layout
        self.fs = filesystem or LocalFileSystem()

    def get(self, view_id: str) -> Optional[CodebaseView]:
        if not view_id or "/" in view_id or "\\" in view_id or ".." in view_id:
            return None
        path = self.layout.views_dir / f"{view_id}.json"
        if not self.fs.exists(path):
            return None
        try:
            data = json.loads(self.fs.read_text(path))
            data.setdefault("id", view_id)
            return CodebaseView.model_validate(data)
        except (OSError, ValueError, AttributeError, PydanticValidationError) as e:
            logger.debug(f"Skipping unreadable view {path}: {e}")
            return None

    def exists(self, view_id: str) -> bool:
        return self.get(view_id) is not None

    def list_views(self) -> List[CodebaseView]:
        views = []
        for path in self.fs.list_files(self.layout.views_dir):
            if path.suffix != ".json" or path.parent != self.layout.views_dir:
                continue
            view = self.get(path.stem)
            if view is not None:
                views.append(view)
        return views
