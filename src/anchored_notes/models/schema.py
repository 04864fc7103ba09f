"""Data models for anchored notes.

Notes and repository configuration are persisted as JSON. Field aliases
carry the on-disk key names (``note``, ``codebaseViewId``,
``noteMaxLength`` ...) while Python code uses snake_case attributes.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

# Tag names become file names under tags/, so keep them to a safe charset
SAFE_TAG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


def validate_tag_name(value: str) -> str:
    """Validate that a tag name is usable as a single file name.

    Raises:
        ValueError: If the tag is empty, contains separators or traversal,
            or uses characters outside letters, digits, '.', '_' and '-'.
    """
    if not value or not value.strip():
        raise ValueError("Tag name cannot be empty")
    if "/" in value or "\\" in value:
        raise ValueError("Tag name cannot contain path separators")
    if ".." in value:
        raise ValueError("Tag name cannot contain '..'")
    if not SAFE_TAG_PATTERN.match(value):
        raise ValueError(
            f"Tag name '{value}' contains invalid characters. "
            "Only letters, digits, '.', '_' and '-' are allowed."
        )
    return value


class Note(BaseModel):
    """A note anchored to one or more repository paths."""

    id: str = Field(..., description="note-<epoch-ms>-<base36 suffix>")
    content: str = Field(..., alias="note", description="Note text")
    anchors: List[str] = Field(..., description="Root-relative POSIX paths")
    tags: List[str] = Field(default_factory=list, description="Tags for categorization")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Additional metadata for the note"
    )
    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    reviewed: bool = Field(default=False, description="Whether a human reviewed it")
    view_id: str = Field(
        default="", alias="codebaseViewId", description="Associated codebase view id"
    )
    cell_coordinates: Optional[Tuple[int, int]] = Field(
        default=None, alias="cellCoordinates", description="[row, col] in the view"
    )

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
        "populate_by_name": True,
    }

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ids are used as file names."""
        if not v or "/" in v or "\\" in v or ".." in v:
            raise ValueError(f"Invalid note id: {v!r}")
        return v

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with the on-disk key names."""
        data = self.model_dump(by_alias=True, mode="json")
        if data.get("cellCoordinates") is None:
            data.pop("cellCoordinates", None)
        return data

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


class NoteDraft(BaseModel):
    """Caller input for a new note, before validation and normalization."""

    content: str
    anchors: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    view_id: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    reviewed: bool = False
    cell_coordinates: Optional[Tuple[int, int]] = None


class NoteWithPath(BaseModel):
    """A stored note together with the file it was read from."""

    note: Note
    path: str = Field(..., description="Root-relative path of the note file")


class RankedNote(BaseModel):
    """A note returned for a path query."""

    note: Note
    is_ambient: bool = Field(
        default=False, description="True when no anchor matched the query path"
    )
    path_distance: int = Field(default=0, description="0 for anchor matches")


class StaleNote(BaseModel):
    """A note with at least one anchor that no longer exists on disk."""

    note: Note
    stale_anchors: List[str]
    valid_anchors: List[str]


class LimitType(str, Enum):
    """How a result limit is measured."""

    COUNT = "count"
    TOKENS = "tokens"


class TokenLimitInfo(BaseModel):
    """How a ranked result list fits a token budget."""

    total_notes: int
    included_notes: int
    total_tokens: int
    used_tokens: int
    remaining_tokens: int
    truncated: bool


class PathNotesResult(BaseModel):
    """Notes returned for a path under a count or token limit."""

    notes: List[RankedNote]
    token_info: Optional[TokenLimitInfo] = None


# ---------------------------------------------------------------------------
# Repository configuration
# ---------------------------------------------------------------------------

DEFAULT_ENABLED_TOOLS: Dict[str, bool] = {
    "create_repository_note": True,
    "get_notes": True,
    "get_repository_tags": True,
    "get_repository_types": True,
    "get_repository_guidance": True,
    "delete_repository_note": True,
    "get_repository_note": True,
    "get_stale_notes": True,
    "get_tag_usage": True,
    "delete_tag": True,
    "replace_tag": True,
    "get_note_coverage": True,
    "list_codebase_views": True,
}


class Limits(BaseModel):
    note_max_length: int = Field(default=500, alias="noteMaxLength", gt=0)
    max_tags_per_note: int = Field(default=3, alias="maxTagsPerNote", ge=0)
    max_anchors_per_note: int = Field(default=5, alias="maxAnchorsPerNote", gt=0)
    tag_description_max_length: int = Field(
        default=500, alias="tagDescriptionMaxLength", gt=0
    )

    model_config = {"populate_by_name": True, "extra": "forbid"}


class StorageSettings(BaseModel):
    compression_enabled: bool = Field(default=False, alias="compressionEnabled")

    model_config = {"populate_by_name": True, "extra": "forbid"}


class TagSettings(BaseModel):
    enforce_allowed_tags: bool = Field(default=False, alias="enforceAllowedTags")

    model_config = {"populate_by_name": True, "extra": "forbid"}


class RepositoryConfiguration(BaseModel):
    """Per-repository limits and switches, stored in ``config.json``."""

    version: int = Field(default=1)
    limits: Limits = Field(default_factory=Limits)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    tags: TagSettings = Field(default_factory=TagSettings)
    enabled_tools: Dict[str, bool] = Field(
        default_factory=lambda: dict(DEFAULT_ENABLED_TOOLS),
        alias="enabled_mcp_tools",
    )

    model_config = {"populate_by_name": True, "extra": "forbid"}

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationErrorKind(str, Enum):
    """Kinds of rule violations a candidate note can have."""

    MISSING_ANCHORS = "missingAnchors"
    NOTE_TOO_LONG = "noteTooLong"
    TOO_MANY_TAGS = "tooManyTags"
    INVALID_TAGS = "invalidTags"
    TOO_MANY_ANCHORS = "tooManyAnchors"
    ANCHOR_OUTSIDE_REPO = "anchorOutsideRepo"
    MISSING_VIEW = "missingView"
    INVALID_TAG_NAME = "invalidTagName"


class ValidationIssue(BaseModel):
    """One violated rule, with the data used to format its message."""

    field: str
    kind: ValidationErrorKind
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    limit: Optional[int] = None
    actual: Optional[int] = None


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class DescriptionAction(str, Enum):
    """What happened to the old tag's description during a rename."""

    TRANSFERRED = "transferred"
    KEPT_EXISTING = "kept_existing"
    DELETED = "deleted"
    NONE = "none"


class TagRenameResult(BaseModel):
    old_tag: str
    new_tag: str
    notes_modified: int
    description_action: DescriptionAction


class TagInfo(BaseModel):
    name: str
    description: str


class TagUsage(BaseModel):
    tag: str
    usage_count: int
    has_description: bool
    description: Optional[str] = None
    note_ids: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------

class FileInfo(BaseModel):
    """An eligible file or directory as reported by the enumerator."""

    relative_path: str
    is_directory: bool = False
    size: Optional[int] = None
    extension: str = ""


class EligibleFiles(BaseModel):
    files: List[FileInfo] = Field(default_factory=list)
    directories: List[FileInfo] = Field(default_factory=list)


class PathCoverage(BaseModel):
    """Coverage state of one eligible file or directory."""

    relative_path: str
    is_directory: bool = False
    size: Optional[int] = None
    extension: str = ""
    has_notes: bool = False
    note_count: int = 0
    note_ids: List[str] = Field(default_factory=list)


class CoverageMetrics(BaseModel):
    total_eligible_files: int = 0
    total_eligible_directories: int = 0
    files_with_notes: int = 0
    directories_with_notes: int = 0
    file_coverage_percentage: float = 0.0
    directory_coverage_percentage: float = 0.0
    total_notes: int = 0
    average_notes_per_covered_file: float = 0.0
    average_notes_per_covered_directory: float = 0.0


class TypeCoverage(BaseModel):
    total_files: int = 0
    files_with_notes: int = 0
    coverage_percentage: float = 0.0
    total_notes: int = 0


class StaleAnchor(BaseModel):
    note_id: str
    anchor: str
    note_preview: str


class RankedPath(BaseModel):
    path: str
    note_count: int = 0
    size: int = 0


class CoverageReport(BaseModel):
    """Ephemeral result of one coverage audit."""

    repository_path: str
    metrics: CoverageMetrics
    coverage_by_type: Dict[str, TypeCoverage] = Field(default_factory=dict)
    files_with_most_notes: List[RankedPath] = Field(default_factory=list)
    largest_uncovered_files: List[RankedPath] = Field(default_factory=list)
    stale_anchors: List[StaleAnchor] = Field(default_factory=list)
    covered_files: List[PathCoverage] = Field(default_factory=list)
    uncovered_files: List[PathCoverage] = Field(default_factory=list)
    covered_directories: List[PathCoverage] = Field(default_factory=list)
    uncovered_directories: List[PathCoverage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Codebase views (read-only here)
# ---------------------------------------------------------------------------

class ViewCell(BaseModel):
    patterns: List[str] = Field(default_factory=list)
    coordinates: Tuple[int, int] = (0, 0)
    priority: int = 0


class CodebaseView(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    cells: Dict[str, ViewCell] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


class CellMatch(BaseModel):
    cell_name: str
    coordinates: Tuple[int, int]
    confidence: float
    matched_anchors: List[str] = Field(default_factory=list)


class ViewStatistics(BaseModel):
    view_id: str
    total_notes: int = 0
    notes_per_cell: Dict[str, int] = Field(default_factory=dict)
    orphaned_notes: int = 0


# ---------------------------------------------------------------------------
# Merge / similarity
# ---------------------------------------------------------------------------

class NoteSimilarity(BaseModel):
    note_a: Note
    note_b: Note
    score: float
    reasons: List[str] = Field(default_factory=list)


class MergeResult(BaseModel):
    merged: Note
    deleted_ids: List[str] = Field(default_factory=list)
