"""Path-based relevance for notes.

A note matches a query path when one of its anchors equals the path,
contains it, or sits beneath it. Those notes rank first with distance 0.
Every other note in the repository is still returned as an ambient note
whose distance is the depth of the query path, so repository-wide notes
surface everywhere but after the anchored ones.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from anchored_notes.exceptions import PathEscapesRepositoryError
from anchored_notes.models.schema import LimitType, Note, PathNotesResult, RankedNote
from anchored_notes.paths import is_related, normalize_relative, path_depth, to_repo_relative
from anchored_notes.services.collaborator_types import TokenCounter
from anchored_notes.services.token_budget import apply_limit

logger = logging.getLogger(__name__)


def anchors_match(note: Note, query: str) -> bool:
    """True when any anchor of ``note`` is related to the canonical ``query``."""
    return any(is_related(normalize_relative(anchor), query) for anchor in note.anchors)


class AnchorMatcher:
    """Filters and orders notes for a query path."""

    def __init__(self, token_counter: Optional[TokenCounter] = None):
        self.token_counter = token_counter

    def rank(
        self,
        notes: Iterable[Note],
        root: Path,
        query_path: Union[str, Path],
        include_ambient: bool = True,
        limit: Optional[int] = None,
        limit_type: Union[LimitType, str] = LimitType.COUNT,
        working_dir: Optional[Union[str, Path]] = None,
    ) -> List[RankedNote]:
        """Rank ``notes`` for ``query_path``.

        Args:
            notes: Candidate notes, usually every note in the repository.
            root: Canonical repository root.
            query_path: Absolute path, a ``./`` or ``../`` path relative to
                ``working_dir``, or a path relative to ``root``.
            include_ambient: Keep notes that no anchor ties to the query.
            limit: Keep at most this many results, or this many tokens of
                results (never fewer than one when anything matched).
            limit_type: Whether ``limit`` counts notes or tokens.
            working_dir: Base for ``./`` and ``../`` queries.

        Returns:
            Results ordered by distance, then newest first.
        """
        return self.rank_with_info(
            notes, root, query_path, include_ambient, limit, limit_type, working_dir
        ).notes

    def rank_with_info(
        self,
        notes: Iterable[Note],
        root: Path,
        query_path: Union[str, Path],
        include_ambient: bool = True,
        limit: Optional[int] = None,
        limit_type: Union[LimitType, str] = LimitType.COUNT,
        working_dir: Optional[Union[str, Path]] = None,
    ) -> PathNotesResult:
        """Like ``rank``, also reporting token usage for token limits."""
        try:
            query = to_repo_relative(root, query_path, working_dir)
        except PathEscapesRepositoryError:
            # Outside the repository nothing is ambient and no stored anchor
            # can be related, since every anchor lives inside the root.
            logger.debug(f"Query path {query_path} is outside {root}")
            return PathNotesResult(notes=[])

        depth = path_depth(query)
        results = []
        for note in notes:
            if anchors_match(note, query):
                results.append(RankedNote(note=note, is_ambient=False, path_distance=0))
            elif include_ambient:
                results.append(RankedNote(note=note, is_ambient=True, path_distance=depth))

        results.sort(key=lambda r: (r.path_distance, -r.note.timestamp))

        results, token_info = apply_limit(results, limit, limit_type, self.token_counter)
        return PathNotesResult(notes=results, token_info=token_info)
