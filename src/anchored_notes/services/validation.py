"""Rule checks applied to a note before anything is written."""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from anchored_notes.exceptions import NoteValidationError
from anchored_notes.models.schema import (
    NoteDraft,
    RepositoryConfiguration,
    ValidationErrorKind,
    ValidationIssue,
    validate_tag_name,
)
from anchored_notes.paths import is_within_repository

logger = logging.getLogger(__name__)

MessageFormatter = Callable[[Dict[str, Any]], str]


def _too_long(data: Dict[str, Any]) -> str:
    return (
        f"Note content is too long ({data['actual']:,} characters, "
        f"{data['percentage']}% of limit). "
        f"Maximum allowed: {data['limit']:,} characters. "
        f"You are {data['overBy']:,} characters over the limit. "
        "Tip: Consider splitting this into multiple focused notes."
    )


DEFAULT_MESSAGES: Dict[ValidationErrorKind, MessageFormatter] = {
    ValidationErrorKind.MISSING_ANCHORS: lambda d: "At least one anchor path is required",
    ValidationErrorKind.NOTE_TOO_LONG: _too_long,
    ValidationErrorKind.TOO_MANY_TAGS: lambda d: (
        f"Note has too many tags ({d['actual']}). Maximum allowed: {d['limit']}"
    ),
    ValidationErrorKind.TOO_MANY_ANCHORS: lambda d: (
        f"Note has too many anchors ({d['actual']}). Maximum allowed: {d['limit']}"
    ),
    ValidationErrorKind.INVALID_TAGS: lambda d: (
        f"The following tags are not allowed: {', '.join(d['invalidTags'])}. "
        f"Allowed tags: {', '.join(d['allowedTags'])}"
    ),
    ValidationErrorKind.ANCHOR_OUTSIDE_REPO: lambda d: (
        f'Anchor "{d["anchor"]}" references a path outside the repository. '
        "All anchors must be within the repository."
    ),
    ValidationErrorKind.MISSING_VIEW: lambda d: "A codebase view id is required",
    ValidationErrorKind.INVALID_TAG_NAME: lambda d: (
        f'Tag "{d["tag"]}" cannot be used. {d["reason"]}'
    ),
}


class ValidationMessages:
    """Maps each violation kind to the function that words its message.

    Overrides replace individual defaults; kinds that are not overridden
    keep the built-in wording.

    Example:
        messages = ValidationMessages({
            ValidationErrorKind.TOO_MANY_TAGS: lambda d: f"max {d['limit']} tags",
        })
    """

    def __init__(self, overrides: Optional[Mapping[ValidationErrorKind, MessageFormatter]] = None):
        self._formatters = dict(DEFAULT_MESSAGES)
        if overrides:
            self._formatters.update(overrides)

    def format(self, kind: ValidationErrorKind, data: Dict[str, Any]) -> str:
        formatter = self._formatters.get(kind)
        if formatter is None:
            raise KeyError(f"Unknown validation message kind: {kind}")
        return formatter(data)


class Validator:
    """Collects every rule a draft note violates.

    Checks never short-circuit: a draft that is too long and has an anchor
    outside the repository reports both problems.
    """

    def __init__(self, messages: Optional[ValidationMessages] = None):
        self.messages = messages or ValidationMessages()

    def _issue(
        self,
        field: str,
        kind: ValidationErrorKind,
        data: Dict[str, Any],
        limit: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> ValidationIssue:
        return ValidationIssue(
            field=field,
            kind=kind,
            message=self.messages.format(kind, data),
            data=data,
            limit=limit,
            actual=actual,
        )

    def validate(
        self,
        draft: NoteDraft,
        config: RepositoryConfiguration,
        root: Path,
        described_tags: Optional[Iterable[str]] = None,
        working_dir: Optional[Path] = None,
    ) -> List[ValidationIssue]:
        """Check ``draft`` against the repository's limits.

        Args:
            draft: The candidate note.
            config: Effective repository configuration.
            root: Canonical repository root.
            described_tags: Tags that have a description. Only consulted when
                tag enforcement is enabled.
            working_dir: Base for ``./`` and ``../`` anchors.

        Returns:
            All violations found; empty when the draft is acceptable.
        """
        issues: List[ValidationIssue] = []
        limits = config.limits

        if not draft.anchors:
            issues.append(self._issue(
                "anchors", ValidationErrorKind.MISSING_ANCHORS, {"actual": 0}, actual=0
            ))

        length = len(draft.content)
        if length > limits.note_max_length:
            data = {
                "actual": length,
                "limit": limits.note_max_length,
                "overBy": length - limits.note_max_length,
                "percentage": round(length / limits.note_max_length * 100),
            }
            issues.append(self._issue(
                "note", ValidationErrorKind.NOTE_TOO_LONG, data,
                limit=limits.note_max_length, actual=length,
            ))

        if len(draft.tags) > limits.max_tags_per_note:
            issues.append(self._issue(
                "tags", ValidationErrorKind.TOO_MANY_TAGS,
                {"actual": len(draft.tags), "limit": limits.max_tags_per_note},
                limit=limits.max_tags_per_note, actual=len(draft.tags),
            ))

        for tag in draft.tags:
            try:
                validate_tag_name(tag)
            except ValueError as e:
                issues.append(self._issue(
                    "tags", ValidationErrorKind.INVALID_TAG_NAME, {"tag": tag, "reason": str(e)}
                ))

        if config.tags.enforce_allowed_tags:
            allowed = sorted(described_tags or [])
            # Enforcement is inert until at least one tag is described
            if allowed:
                invalid = [tag for tag in draft.tags if tag not in allowed]
                if invalid:
                    issues.append(self._issue(
                        "tags", ValidationErrorKind.INVALID_TAGS,
                        {"invalidTags": invalid, "allowedTags": allowed},
                    ))

        if len(draft.anchors) > limits.max_anchors_per_note:
            issues.append(self._issue(
                "anchors", ValidationErrorKind.TOO_MANY_ANCHORS,
                {"actual": len(draft.anchors), "limit": limits.max_anchors_per_note},
                limit=limits.max_anchors_per_note, actual=len(draft.anchors),
            ))

        for anchor in draft.anchors:
            if not is_within_repository(root, anchor, working_dir):
                issues.append(self._issue(
                    "anchors", ValidationErrorKind.ANCHOR_OUTSIDE_REPO, {"anchor": anchor}
                ))

        if not draft.view_id or not draft.view_id.strip():
            issues.append(self._issue(
                "codebaseViewId", ValidationErrorKind.MISSING_VIEW, {}
            ))

        if issues:
            logger.debug(f"Draft note rejected with {len(issues)} issue(s)")
        return issues


def raise_for_issues(issues: List[ValidationIssue]) -> None:
    """Raise a single ``NoteValidationError`` carrying every issue."""
    if issues:
        raise NoteValidationError(issues)
