"""Tag vocabulary: descriptions, enforcement and propagation into notes."""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from anchored_notes.exceptions import ErrorCode, TagError
from anchored_notes.models.schema import (
    DescriptionAction,
    Note,
    TagInfo,
    TagRenameResult,
    TagUsage,
    validate_tag_name,
)
from anchored_notes.storage.config_store import ConfigurationStore
from anchored_notes.storage.note_repository import NoteRepository
from anchored_notes.storage.tag_repository import TagRepository
from anchored_notes.utils import unique

logger = logging.getLogger(__name__)


class TagService:
    """Keeps tag descriptions and note tag lists consistent.

    Described tags form the allowed vocabulary when enforcement is on.
    Renames and cascading deletes rewrite each affected note file in full;
    they are bulk passes, not transactions.
    """

    def __init__(
        self,
        tags: TagRepository,
        notes: NoteRepository,
        configuration: ConfigurationStore,
    ):
        self.tags = tags
        self.notes = notes
        self.configuration = configuration

    # -- descriptions -------------------------------------------------------

    def save_description(self, tag: str, description: str) -> None:
        """Create or replace the description for ``tag``.

        Raises:
            TagError: If the tag name is unsafe or the description is longer
                than the configured maximum.
        """
        max_length = self.configuration.get().limits.tag_description_max_length
        if len(description) > max_length:
            raise TagError(
                f"Tag description exceeds maximum length of {max_length} characters. "
                f"Current length: {len(description)}",
                tag_name=tag,
                code=ErrorCode.TAG_DESCRIPTION_TOO_LONG,
            )
        self.tags.save(tag, description)

    def get_description(self, tag: str) -> Optional[str]:
        return self.tags.get(tag)

    def get_descriptions(self) -> Dict[str, str]:
        return self.tags.get_all()

    def get_tags_with_descriptions(self) -> List[TagInfo]:
        """Described tags, which double as the allowed vocabulary."""
        return [
            TagInfo(name=name, description=text)
            for name, text in sorted(self.tags.get_all().items())
        ]

    def delete_description(self, tag: str, cascade_to_notes: bool = False) -> bool:
        """Delete the description of ``tag``.

        Args:
            tag: Tag whose description is removed.
            cascade_to_notes: Also strip the tag from every note.

        Returns:
            True if a description existed.
        """
        if cascade_to_notes:
            modified = self.remove_tag_from_notes(tag)
            logger.info(f"Removed tag '{tag}' from {modified} note(s)")
        return self.tags.delete(tag)

    # -- enforcement --------------------------------------------------------

    def get_allowed_tags(self) -> Dict[str, object]:
        """Whether enforcement is on and, if so, which tags are allowed."""
        enforced = self.configuration.is_tag_enforcement_enabled()
        tags = sorted(self.tags.get_all()) if enforced else []
        return {"enforced": enforced, "tags": tags}

    def set_enforcement(self, enabled: bool) -> None:
        self.configuration.set_tag_enforcement(enabled)

    def add_allowed_tag(self, tag: str, description: Optional[str] = None) -> None:
        """Allow a tag by giving it a description."""
        self.save_description(tag, description or f"Description for {tag} tag")

    # -- propagation into notes --------------------------------------------

    def remove_tag_from_notes(self, tag: str) -> int:
        """Strip ``tag`` from every note. Returns the number of notes rewritten."""

        def strip(note: Note) -> bool:
            if tag not in note.tags:
                return False
            note.tags = [t for t in note.tags if t != tag]
            return True

        return self.notes.update_all(strip)

    def replace_tag_in_notes(self, old_tag: str, new_tag: str) -> int:
        """Swap ``old_tag`` for ``new_tag`` in every note, without duplicates."""

        def swap(note: Note) -> bool:
            if old_tag not in note.tags:
                return False
            note.tags = unique(new_tag if t == old_tag else t for t in note.tags)
            return True

        return self.notes.update_all(swap)

    def rename_tag(
        self, old_tag: str, new_tag: str, transfer_description: bool = True
    ) -> TagRenameResult:
        """Rename a tag across all notes and settle its description.

        The destination keeps its own description if it already has one.

        Raises:
            TagError: If the names are equal or ``new_tag`` is not a valid name.
        """
        if old_tag == new_tag:
            raise TagError(
                "Old tag and new tag cannot be the same",
                tag_name=old_tag,
                code=ErrorCode.TAG_RENAME_INVALID,
            )
        try:
            validate_tag_name(new_tag)
        except ValueError as e:
            raise TagError(str(e), tag_name=new_tag) from e

        old_description = self.tags.get(old_tag)
        new_description = self.tags.get(new_tag)

        modified = self.replace_tag_in_notes(old_tag, new_tag)

        action = DescriptionAction.NONE
        if old_description is not None:
            if transfer_description and new_description is None:
                self.tags.save(new_tag, old_description)
                action = DescriptionAction.TRANSFERRED
            elif transfer_description:
                action = DescriptionAction.KEPT_EXISTING
            else:
                action = DescriptionAction.DELETED
            self.tags.delete(old_tag)

        logger.info(
            f"Renamed tag '{old_tag}' -> '{new_tag}' in {modified} note(s), "
            f"description {action.value}"
        )
        return TagRenameResult(
            old_tag=old_tag,
            new_tag=new_tag,
            notes_modified=modified,
            description_action=action,
        )

    # -- usage --------------------------------------------------------------

    def get_tag_usage(
        self,
        filter_tags: Optional[Iterable[str]] = None,
        include_note_ids: bool = False,
        include_descriptions: bool = True,
    ) -> List[TagUsage]:
        """Usage statistics over every described or used tag.

        Sorted by usage count (descending), then by name.
        """
        usage: Dict[str, Set[str]] = defaultdict(set)
        for note in self.notes.get_all_notes():
            for tag in note.tags:
                usage[tag].add(note.id)

        descriptions = self.tags.get_all()
        known = set(usage) | set(descriptions)
        names = [t for t in filter_tags if t in known] if filter_tags else list(known)

        results = []
        for name in unique(names):
            note_ids = sorted(usage.get(name, ()))
            results.append(TagUsage(
                tag=name,
                usage_count=len(note_ids),
                has_description=name in descriptions,
                description=descriptions.get(name) if include_descriptions else None,
                note_ids=note_ids if include_note_ids else [],
            ))
        results.sort(key=lambda u: (-u.usage_count, u.tag))
        return results

    def get_used_tags(self, notes: Iterable[Note]) -> List[str]:
        """Tags appearing on ``notes``, most frequent first."""
        counts: Dict[str, int] = defaultdict(int)
        for note in notes:
            for tag in note.tags:
                counts[tag] += 1
        return [tag for tag, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]
