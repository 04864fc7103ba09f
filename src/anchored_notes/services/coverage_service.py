"""Coverage audit: how much of the eligible file tree notes reference."""
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from anchored_notes.config import config
from anchored_notes.exceptions import PathEscapesRepositoryError
from anchored_notes.models.schema import (
    CoverageMetrics,
    CoverageReport,
    FileInfo,
    Note,
    PathCoverage,
    RankedPath,
    StaleAnchor,
    TypeCoverage,
)
from anchored_notes.paths import ROOT, RepositoryLayout, is_related, normalize_relative, to_repo_relative
from anchored_notes.services.collaborator_types import EligibleFileEnumerator
from anchored_notes.services.eligible_files import IgnoreFileEnumerator
from anchored_notes.storage.filesystem import FileSystem, LocalFileSystem
from anchored_notes.storage.note_repository import NoteRepository
from anchored_notes.utils import preview

logger = logging.getLogger(__name__)

TOP_N = 10
NO_EXTENSION = "no-extension"


def _percentage(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def _average(total: int, count: int) -> float:
    return total / count if count > 0 else 0.0


def _coverage_map(entries: Sequence[FileInfo]) -> "OrderedDict[str, PathCoverage]":
    return OrderedDict(
        (entry.relative_path, PathCoverage(**entry.model_dump())) for entry in entries
    )


def _mark(entry: PathCoverage, note_id: str) -> None:
    entry.has_notes = True
    entry.note_count += 1
    entry.note_ids.append(note_id)


class CoverageService:
    """Cross-references every note anchor with the eligible file set.

    An anchor that matches no eligible entry is only reported as stale
    when nothing exists at that path on disk, so anchors pointing at
    ignored-but-present files are not flagged.
    """

    def __init__(
        self,
        layout: RepositoryLayout,
        repository: NoteRepository,
        enumerator: Optional[EligibleFileEnumerator] = None,
        filesystem: Optional[FileSystem] = None,
    ):
        self.layout = layout
        self.repository = repository
        self.enumerator = enumerator or IgnoreFileEnumerator(
            data_dir_name=layout.data_dir.name
        )
        self.fs = filesystem or LocalFileSystem()

    def _canonical_anchor(self, anchor: str) -> str:
        try:
            return to_repo_relative(self.layout.root, anchor)
        except PathEscapesRepositoryError:
            return normalize_relative(anchor)

    def compute(
        self,
        include_directories: bool = True,
        max_stale_to_report: Optional[int] = None,
        exclude_directory_anchors: bool = False,
        extra_ignore_patterns: Optional[Sequence[str]] = None,
    ) -> CoverageReport:
        """Audit note coverage for the repository.

        Args:
            include_directories: Also compute directory coverage.
            max_stale_to_report: Cap on reported stale anchors. Defaults to
                the process setting.
            exclude_directory_anchors: Anchors naming an eligible directory
                do not count toward directory coverage.
            extra_ignore_patterns: Patterns excluded on top of ignore files.

        Returns:
            The coverage report.
        """
        if max_stale_to_report is None:
            max_stale_to_report = config.max_stale_to_report

        eligible = self.enumerator.enumerate(
            self.layout.root,
            include_directories=include_directories,
            extra_ignore_patterns=extra_ignore_patterns,
        )
        notes: List[Note] = self.repository.get_all_notes()

        file_map = _coverage_map(eligible.files)
        dir_map = _coverage_map(eligible.directories if include_directories else [])
        stale: List[StaleAnchor] = []

        for note in notes:
            for raw_anchor in note.anchors:
                anchor = self._canonical_anchor(raw_anchor)
                matched = False

                for path, entry in file_map.items():
                    if is_related(anchor, path):
                        _mark(entry, note.id)
                        matched = True

                is_directory_anchor = anchor in dir_map
                if exclude_directory_anchors and is_directory_anchor:
                    matched = True
                else:
                    for path, entry in dir_map.items():
                        if is_related(anchor, path):
                            _mark(entry, note.id)
                            matched = True

                if not matched and anchor != ROOT:
                    if not self.fs.exists(self.layout.absolute(anchor)):
                        stale.append(StaleAnchor(
                            note_id=note.id,
                            anchor=raw_anchor,
                            note_preview=preview(note.content),
                        ))

        all_files = list(file_map.values())
        all_dirs = list(dir_map.values())
        covered_files = [f for f in all_files if f.has_notes]
        uncovered_files = [f for f in all_files if not f.has_notes]
        covered_dirs = [d for d in all_dirs if d.has_notes]
        uncovered_dirs = [d for d in all_dirs if not d.has_notes]

        metrics = CoverageMetrics(
            total_eligible_files=len(all_files),
            total_eligible_directories=len(all_dirs),
            files_with_notes=len(covered_files),
            directories_with_notes=len(covered_dirs),
            file_coverage_percentage=_percentage(len(covered_files), len(all_files)),
            directory_coverage_percentage=_percentage(len(covered_dirs), len(all_dirs)),
            total_notes=len(notes),
            average_notes_per_covered_file=_average(
                sum(f.note_count for f in covered_files), len(covered_files)
            ),
            average_notes_per_covered_directory=_average(
                sum(d.note_count for d in covered_dirs), len(covered_dirs)
            ),
        )

        by_type: Dict[str, TypeCoverage] = {}
        for entry in all_files:
            info = by_type.setdefault(entry.extension or NO_EXTENSION, TypeCoverage())
            info.total_files += 1
            if entry.has_notes:
                info.files_with_notes += 1
                info.total_notes += entry.note_count
        for info in by_type.values():
            info.coverage_percentage = _percentage(info.files_with_notes, info.total_files)

        most_notes = sorted(covered_files, key=lambda f: -f.note_count)[:TOP_N]
        largest_uncovered = sorted(
            (f for f in uncovered_files if f.size is not None),
            key=lambda f: -(f.size or 0),
        )[:TOP_N]

        logger.info(
            f"Coverage for {self.layout.root}: {metrics.files_with_notes}/"
            f"{metrics.total_eligible_files} files, {len(stale)} stale anchor(s)"
        )

        return CoverageReport(
            repository_path=str(self.layout.root),
            metrics=metrics,
            coverage_by_type=by_type,
            files_with_most_notes=[
                RankedPath(path=f.relative_path, note_count=f.note_count, size=f.size or 0)
                for f in most_notes
            ],
            largest_uncovered_files=[
                RankedPath(path=f.relative_path, size=f.size or 0) for f in largest_uncovered
            ],
            stale_anchors=stale[:max_stale_to_report],
            covered_files=covered_files,
            uncovered_files=uncovered_files,
            covered_directories=covered_dirs,
            uncovered_directories=uncovered_dirs,
        )
