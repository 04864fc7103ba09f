"""Service layer for anchored note operations.

``NoteService`` is the single entry point that CLI or protocol layers call.
It binds one repository root to its stores and wires validation, matching,
tags, coverage and views together.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from anchored_notes.config import config
from anchored_notes.exceptions import (
    AnchoredNotesError,
    ErrorCode,
    GuidanceTokenError,
)
from anchored_notes.models.schema import (
    CellMatch,
    CodebaseView,
    CoverageReport,
    LimitType,
    MergeResult,
    Note,
    NoteDraft,
    NoteSimilarity,
    PathNotesResult,
    RankedNote,
    RepositoryConfiguration,
    StaleNote,
    TagInfo,
    TagRenameResult,
    TagUsage,
    ValidationIssue,
    ViewStatistics,
)
from anchored_notes.observability import traced
from anchored_notes.paths import (
    ROOT,
    RepositoryLayout,
    find_repository_root,
    normalize_relative,
    to_repo_relative,
)
from anchored_notes.services.collaborator_types import (
    EligibleFileEnumerator,
    GuidanceTokenValidator,
    TokenCounter,
)
from anchored_notes.services.coverage_service import CoverageService
from anchored_notes.services.matching import AnchorMatcher
from anchored_notes.services.similarity import DEFAULT_PAIR_THRESHOLD, find_similar_note_pairs
from anchored_notes.services.tag_service import TagService
from anchored_notes.services.validation import ValidationMessages, Validator, raise_for_issues
from anchored_notes.storage.config_store import ConfigurationStore
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem
from anchored_notes.storage.note_repository import NoteRepository
from anchored_notes.storage.tag_repository import TagRepository
from anchored_notes.storage.view_repository import ViewRepository
from anchored_notes.utils import unique

logger = logging.getLogger(__name__)

PathInput = Union[str, Path]


class NoteService:
    """Anchored notes for one repository.

    The repository is found by walking up from ``path`` to the nearest
    ``.git`` marker. All state lives on disk under the data directory;
    the service holds no cache, so every read sees the latest files.
    """

    def __init__(
        self,
        path: PathInput,
        filesystem: Optional[FileSystem] = None,
        data_dir_name: Optional[str] = None,
        messages: Optional[ValidationMessages] = None,
        token_validator: Optional[GuidanceTokenValidator] = None,
        enumerator: Optional[EligibleFileEnumerator] = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        """Bind the service to the repository containing ``path``.

        Args:
            path: Any file or directory inside the repository.
            filesystem: Disk access for every store.
            data_dir_name: Overrides the process-wide data directory name.
            messages: Wording for validation failures.
            token_validator: When given, ``save_note`` requires a guidance
                token that this validator accepts.
            enumerator: Source of eligible files for coverage audits.
            token_counter: Measures notes for token limits. Defaults to
                a tiktoken counter.

        Raises:
            RepositoryNotFoundError: If ``path`` is not inside a repository.
        """
        self.root = find_repository_root(path)
        self.layout = RepositoryLayout.for_root(
            self.root, data_dir_name or config.data_dir_name
        )
        self.fs = filesystem or LocalFileSystem()
        self.token_validator = token_validator

        self.configuration = ConfigurationStore(self.layout, self.fs)
        self.notes = NoteRepository(self.layout, self.fs)
        self.views = ViewRepository(self.layout, self.fs)
        self.tags = TagService(TagRepository(self.layout, self.fs), self.notes, self.configuration)
        self.coverage = CoverageService(self.layout, self.notes, enumerator, self.fs)
        self.validator = Validator(messages)
        self.matcher = AnchorMatcher(token_counter)

    # -- writing ------------------------------------------------------------

    def _check_guidance_token(self, token: Optional[str]) -> None:
        if self.token_validator is None:
            return
        if not token:
            raise GuidanceTokenError(
                "A guidance token is required. Read the repository guidance first.",
                code=ErrorCode.GUIDANCE_TOKEN_MISSING,
            )
        if not self.token_validator.validate(token, self.root):
            raise GuidanceTokenError("Guidance token is invalid or expired")

    def validate_note(
        self,
        content: str,
        anchors: Sequence[str],
        tags: Sequence[str] = (),
        view_id: str = "",
        working_dir: Optional[PathInput] = None,
    ) -> List[ValidationIssue]:
        """Dry run of the checks ``save_note`` applies; nothing is written."""
        draft = NoteDraft(
            content=content, anchors=list(anchors), tags=list(tags), view_id=view_id
        )
        return self._validate(draft, working_dir)

    def _validate(self, draft: NoteDraft, working_dir: Optional[PathInput]) -> List[ValidationIssue]:
        configuration = self.configuration.get()
        described = self.tags.get_descriptions() if configuration.tags.enforce_allowed_tags else None
        return self.validator.validate(
            draft,
            configuration,
            self.root,
            described_tags=described,
            working_dir=Path(working_dir) if working_dir is not None else None,
        )

    @traced()
    def save_note(
        self,
        content: str,
        anchors: Sequence[str],
        tags: Sequence[str],
        view_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        reviewed: bool = False,
        cell_coordinates: Optional[Tuple[int, int]] = None,
        working_dir: Optional[PathInput] = None,
        guidance_token: Optional[str] = None,
    ) -> Note:
        """Validate and persist a new note.

        Anchors may be absolute, ``./``/``../`` relative to ``working_dir``,
        or already relative to the repository root; they are stored in
        canonical root-relative form.

        Raises:
            GuidanceTokenError: If a token validator is configured and the
                token is missing or rejected.
            NoteValidationError: If any rule is violated. Nothing is written.
        """
        self._check_guidance_token(guidance_token)

        draft = NoteDraft(
            content=content,
            anchors=list(anchors),
            tags=list(tags),
            view_id=view_id,
            metadata=dict(metadata or {}),
            reviewed=reviewed,
            cell_coordinates=cell_coordinates,
        )
        raise_for_issues(self._validate(draft, working_dir))

        normalized = [
            to_repo_relative(self.root, anchor, working_dir) for anchor in draft.anchors
        ]
        note = self.notes.create(
            content=draft.content,
            anchors=normalized,
            tags=draft.tags,
            view_id=draft.view_id,
            metadata=draft.metadata,
            reviewed=draft.reviewed,
            cell_coordinates=list(draft.cell_coordinates) if draft.cell_coordinates else None,
        )
        logger.info(f"Saved note {note.id} anchored to {', '.join(normalized)}")
        return note

    # -- reading ------------------------------------------------------------

    @traced()
    def get_notes_for_path(
        self,
        path: PathInput = ROOT,
        include_ambient: bool = True,
        limit: Optional[int] = None,
        limit_type: Union[LimitType, str] = LimitType.COUNT,
        working_dir: Optional[PathInput] = None,
    ) -> List[RankedNote]:
        """Notes relevant to ``path``, anchored matches first.

        ``./`` and ``../`` paths resolve against ``working_dir``, the same
        way ``save_note`` resolves anchors.
        """
        return self.matcher.rank(
            self.notes.get_all_notes(),
            self.root,
            path,
            include_ambient=include_ambient,
            limit=limit,
            limit_type=limit_type,
            working_dir=working_dir,
        )

    @traced()
    def get_notes_for_path_with_limit(
        self,
        path: PathInput,
        include_ambient: bool,
        limit_type: Union[LimitType, str],
        limit: int,
        working_dir: Optional[PathInput] = None,
    ) -> PathNotesResult:
        """Notes for ``path`` under a count or token limit.

        With ``LimitType.TOKENS`` the result carries ``token_info`` telling
        how much of the budget was used and whether results were cut.
        """
        return self.matcher.rank_with_info(
            self.notes.get_all_notes(),
            self.root,
            path,
            include_ambient=include_ambient,
            limit=limit,
            limit_type=limit_type,
            working_dir=working_dir,
        )

    def get_note_by_id(self, note_id: str) -> Optional[Note]:
        return self.notes.get(note_id)

    @traced()
    def delete_note_by_id(self, note_id: str) -> bool:
        return self.notes.delete(note_id)

    # -- review -------------------------------------------------------------

    def mark_reviewed(self, note_id: str) -> bool:
        """Flag one note as reviewed. Returns False if it does not exist."""
        item = self.notes.find(note_id)
        if item is None:
            return False
        item.note.reviewed = True
        self.notes.save(item)
        return True

    @traced()
    def mark_all_reviewed(self, path: Optional[PathInput] = None) -> int:
        """Flag every note returned for ``path`` (default: the root) as reviewed.

        Returns:
            Number of notes that changed.
        """
        target = {r.note.id for r in self.get_notes_for_path(path or ROOT, include_ambient=True)}

        def review(note: Note) -> bool:
            if note.id not in target or note.reviewed:
                return False
            note.reviewed = True
            return True

        return self.notes.update_all(review)

    def get_unreviewed_notes(self, path: Optional[PathInput] = None) -> List[Note]:
        return [
            r.note
            for r in self.get_notes_for_path(path or ROOT, include_ambient=True)
            if not r.note.reviewed
        ]

    # -- staleness, merging, duplicates ------------------------------------

    @traced()
    def check_stale_anchors(self) -> List[StaleNote]:
        """Notes with at least one anchor that no longer exists on disk."""
        stale_notes = []
        for note in self.notes.get_all_notes():
            stale, valid = [], []
            for anchor in note.anchors:
                if self.fs.exists(self.layout.absolute(normalize_relative(anchor))):
                    valid.append(anchor)
                else:
                    stale.append(anchor)
            if stale:
                stale_notes.append(StaleNote(note=note, stale_anchors=stale, valid_anchors=valid))
        return stale_notes

    @traced()
    def merge_notes(
        self,
        note_ids: Sequence[str],
        content: str,
        anchors: Sequence[str],
        tags: Sequence[str],
        view_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        delete_originals: bool = True,
        working_dir: Optional[PathInput] = None,
        guidance_token: Optional[str] = None,
    ) -> MergeResult:
        """Replace several notes with one consolidated note.

        The merged note goes through the same validation as ``save_note``
        and records ``mergedFrom`` and ``mergedAt`` in its metadata.

        Raises:
            AnchoredNotesError: If ``note_ids`` is empty.
            NoteValidationError: If the merged note breaks a rule.
        """
        if not note_ids:
            raise AnchoredNotesError(
                "At least one note id is required to merge",
                code=ErrorCode.NOTE_MERGE_INVALID,
            )

        merged_metadata = dict(metadata or {})
        merged_metadata["mergedFrom"] = list(note_ids)
        merged_metadata["mergedAt"] = datetime.now(timezone.utc).isoformat()

        merged = self.save_note(
            content=content,
            anchors=unique(anchors),
            tags=unique(tags),
            view_id=view_id,
            metadata=merged_metadata,
            working_dir=working_dir,
            guidance_token=guidance_token,
        )

        deleted = []
        if delete_originals:
            deleted = [note_id for note_id in note_ids if self.notes.delete(note_id)]
        logger.info(f"Merged {len(note_ids)} note(s) into {merged.id}, deleted {len(deleted)}")
        return MergeResult(merged=merged, deleted_ids=deleted)

    def find_similar_notes(self, threshold: float = DEFAULT_PAIR_THRESHOLD) -> List[NoteSimilarity]:
        return find_similar_note_pairs(self.notes.get_all_notes(), threshold)

    # -- views --------------------------------------------------------------

    def list_views(self) -> List[CodebaseView]:
        return self.views.list_views()

    def get_notes_for_view(self, view_id: str) -> List[Note]:
        notes = [n for n in self.notes.get_all_notes() if n.view_id == view_id]
        return sorted(notes, key=lambda n: -n.timestamp)

    def get_notes_for_cell(self, view_id: str, coordinates: Tuple[int, int]) -> List[Note]:
        target = tuple(coordinates)
        return [
            n for n in self.get_notes_for_view(view_id)
            if n.cell_coordinates is not None and tuple(n.cell_coordinates) == target
        ]

    def detect_cell_for_anchors(self, view_id: str, anchors: Sequence[str]) -> Optional[CellMatch]:
        """Best view cell for ``anchors``, or None if no cell matches any.

        An anchor matches a cell when it contains one of the cell's patterns
        (with ``*`` removed) or the pattern contains the anchor. Confidence
        is the fraction of anchors that match.
        """
        view = self.views.get(view_id)
        if view is None or not anchors:
            return None

        best: Optional[CellMatch] = None
        for name, cell in view.cells.items():
            matched = [
                anchor for anchor in anchors
                if any(
                    pattern.replace("*", "") in anchor or anchor in pattern
                    for pattern in cell.patterns
                )
            ]
            confidence = len(matched) / len(anchors)
            if confidence > 0 and (best is None or confidence > best.confidence):
                best = CellMatch(
                    cell_name=name,
                    coordinates=cell.coordinates,
                    confidence=confidence,
                    matched_anchors=matched,
                )
        return best

    def get_view_statistics(self, view_id: str) -> ViewStatistics:
        """Count the view's notes per cell.

        Notes without coordinates, or whose coordinates match no cell of
        the view, count as orphaned.
        """
        notes = self.get_notes_for_view(view_id)
        view = self.views.get(view_id)
        cells = view.cells if view else {}
        per_cell = {name: 0 for name in cells}
        orphaned = 0
        for note in notes:
            cell_name = None
            if note.cell_coordinates is not None:
                for name, cell in cells.items():
                    if tuple(cell.coordinates) == tuple(note.cell_coordinates):
                        cell_name = name
                        break
            if cell_name is None:
                orphaned += 1
            else:
                per_cell[cell_name] += 1
        return ViewStatistics(
            view_id=view_id,
            total_notes=len(notes),
            notes_per_cell=per_cell,
            orphaned_notes=orphaned,
        )

    def get_orphaned_notes(self) -> List[Note]:
        """Notes with no view association."""
        return [n for n in self.notes.get_all_notes() if not n.view_id]

    def update_note_view(
        self,
        note_id: str,
        view_id: Optional[str] = None,
        cell_coordinates: Optional[Tuple[int, int]] = None,
    ) -> bool:
        """Move a note to another view and/or cell, keeping its id.

        ``cell_coordinates`` replaces the stored value; passing None clears it.
        """
        item = self.notes.find(note_id)
        if item is None:
            return False
        if view_id is not None:
            item.note.view_id = view_id
        item.note.cell_coordinates = cell_coordinates
        self.notes.save(item)
        return True

    # -- tags ---------------------------------------------------------------

    def save_tag_description(self, tag: str, description: str) -> None:
        self.tags.save_description(tag, description)

    def get_tag_descriptions(self) -> Dict[str, str]:
        return self.tags.get_descriptions()

    def get_tags_with_descriptions(self) -> List[TagInfo]:
        return self.tags.get_tags_with_descriptions()

    @traced()
    def delete_tag_description(self, tag: str, cascade_to_notes: bool = False) -> bool:
        return self.tags.delete_description(tag, cascade_to_notes=cascade_to_notes)

    @traced()
    def rename_tag(
        self, old_tag: str, new_tag: str, transfer_description: bool = True
    ) -> TagRenameResult:
        return self.tags.rename_tag(old_tag, new_tag, transfer_description)

    def remove_tag_from_notes(self, tag: str) -> int:
        return self.tags.remove_tag_from_notes(tag)

    def get_allowed_tags(self) -> Dict[str, Any]:
        return self.tags.get_allowed_tags()

    def get_tag_usage(
        self,
        filter_tags: Optional[Sequence[str]] = None,
        include_note_ids: bool = False,
        include_descriptions: bool = True,
    ) -> List[TagUsage]:
        return self.tags.get_tag_usage(filter_tags, include_note_ids, include_descriptions)

    def get_used_tags_for_path(self, path: PathInput = ROOT) -> List[str]:
        """Tags of the notes returned for ``path``, most frequent first."""
        ranked = self.get_notes_for_path(path, include_ambient=True)
        return self.tags.get_used_tags(r.note for r in ranked)

    # -- configuration ------------------------------------------------------

    def get_configuration(self) -> RepositoryConfiguration:
        return self.configuration.get()

    def update_configuration(self, partial: Dict[str, Any]) -> RepositoryConfiguration:
        return self.configuration.update(partial)

    def reset_configuration(self) -> RepositoryConfiguration:
        return self.configuration.reset()

    # -- coverage -----------------------------------------------------------

    @traced()
    def compute_coverage(self, **options: Any) -> CoverageReport:
        """Run a coverage audit. Options are those of ``CoverageService.compute``."""
        return self.coverage.compute(**options)
