"""Tests for note validation and message formatting."""
import pytest

from anchored_notes.exceptions import ErrorCode, NoteValidationError
from anchored_notes.models.schema import (
    Limits,
    NoteDraft,
    RepositoryConfiguration,
    TagSettings,
    ValidationErrorKind,
)
from anchored_notes.services.validation import (
    ValidationMessages,
    Validator,
    raise_for_issues,
)


def draft(**overrides):
    data = {
        "content": "Retry logic lives here",
        "anchors": ["src/app.py"],
        "tags": ["api"],
        "view_id": "main",
    }
    data.update(overrides)
    return NoteDraft(**data)


def kinds(issues):
    return {issue.kind for issue in issues}


@pytest.fixture
def validator():
    return Validator()


class TestValidator:
    """Tests for the individual rules."""

    def test_valid_draft(self, validator, repo_root):
        """A draft inside every limit has no issues."""
        assert validator.validate(draft(), RepositoryConfiguration(), repo_root) == []

    def test_missing_anchors(self, validator, repo_root):
        """Anchors are required."""
        issues = validator.validate(draft(anchors=[]), RepositoryConfiguration(), repo_root)
        assert kinds(issues) == {ValidationErrorKind.MISSING_ANCHORS}
        assert issues[0].message == "At least one anchor path is required"

    def test_content_too_long(self, validator, repo_root):
        """Over-long content reports size, percentage and overflow."""
        issues = validator.validate(draft(content="x" * 600), RepositoryConfiguration(), repo_root)
        assert kinds(issues) == {ValidationErrorKind.NOTE_TOO_LONG}
        issue = issues[0]
        assert issue.field == "note"
        assert issue.limit == 500
        assert issue.actual == 600
        assert "(600 characters, 120% of limit)" in issue.message
        assert "You are 100 characters over the limit" in issue.message

    def test_content_length_uses_thousands_separator(self, validator, repo_root):
        """Large numbers are grouped with commas."""
        cfg = RepositoryConfiguration(limits=Limits(note_max_length=1000))
        issues = validator.validate(draft(content="x" * 1500), cfg, repo_root)
        assert "1,500 characters" in issues[0].message
        assert "Maximum allowed: 1,000 characters" in issues[0].message

    def test_content_at_limit_is_fine(self, validator, repo_root):
        """The limit itself is allowed."""
        assert validator.validate(draft(content="x" * 500), RepositoryConfiguration(), repo_root) == []

    def test_too_many_tags(self, validator, repo_root):
        """Tag count is bounded."""
        issues = validator.validate(
            draft(tags=["a", "b", "c", "d"]), RepositoryConfiguration(), repo_root
        )
        assert kinds(issues) == {ValidationErrorKind.TOO_MANY_TAGS}
        assert issues[0].message == "Note has too many tags (4). Maximum allowed: 3"

    def test_tag_names_must_be_addressable(self, validator, repo_root):
        """Each tag that could not have a description file is reported."""
        issues = validator.validate(
            draft(tags=["my tag", "área", "ok"]), RepositoryConfiguration(), repo_root
        )
        assert kinds(issues) == {ValidationErrorKind.INVALID_TAG_NAME}
        assert [issue.data["tag"] for issue in issues] == ["my tag", "área"]
        assert issues[0].field == "tags"
        assert issues[0].message.startswith('Tag "my tag" cannot be used.')

    def test_too_many_anchors(self, validator, repo_root):
        """Anchor count is bounded."""
        anchors = [f"src/f{i}.py" for i in range(6)]
        issues = validator.validate(draft(anchors=anchors), RepositoryConfiguration(), repo_root)
        assert kinds(issues) == {ValidationErrorKind.TOO_MANY_ANCHORS}

    def test_anchor_outside_repository(self, validator, repo_root):
        """Each escaping anchor is reported by name."""
        issues = validator.validate(
            draft(anchors=["src/app.py", "../secret.txt"]), RepositoryConfiguration(), repo_root
        )
        assert kinds(issues) == {ValidationErrorKind.ANCHOR_OUTSIDE_REPO}
        assert '"../secret.txt"' in issues[0].message

    def test_working_dir_applies_to_relative_anchors(self, validator, repo_root):
        """../ from a subdirectory can stay inside the repository."""
        issues = validator.validate(
            draft(anchors=["../README.md"]), RepositoryConfiguration(), repo_root,
            working_dir=repo_root / "src",
        )
        assert issues == []

    def test_missing_view(self, validator, repo_root):
        """A view id is required for new notes."""
        issues = validator.validate(draft(view_id="  "), RepositoryConfiguration(), repo_root)
        assert kinds(issues) == {ValidationErrorKind.MISSING_VIEW}
        assert issues[0].field == "codebaseViewId"

    def test_all_violations_collected(self, validator, repo_root):
        """Checks do not stop at the first failure."""
        bad = draft(
            content="x" * 501,
            tags=["a", "b", "c", "d d"],
            anchors=["../out"] + [f"f{i}" for i in range(5)],
            view_id="",
        )
        assert kinds(validator.validate(bad, RepositoryConfiguration(), repo_root)) == {
            ValidationErrorKind.NOTE_TOO_LONG,
            ValidationErrorKind.TOO_MANY_TAGS,
            ValidationErrorKind.INVALID_TAG_NAME,
            ValidationErrorKind.TOO_MANY_ANCHORS,
            ValidationErrorKind.ANCHOR_OUTSIDE_REPO,
            ValidationErrorKind.MISSING_VIEW,
        }


class TestTagEnforcement:
    """Tests for the allowed-tag rule."""

    @pytest.fixture
    def enforced(self):
        return RepositoryConfiguration(tags=TagSettings(enforce_allowed_tags=True))

    def test_disallowed_tags_reported(self, validator, repo_root, enforced):
        """Undescribed tags are rejected when enforcement is on."""
        issues = validator.validate(
            draft(tags=["api", "misc"]), enforced, repo_root, described_tags={"api", "db"}
        )
        assert kinds(issues) == {ValidationErrorKind.INVALID_TAGS}
        assert issues[0].data["invalidTags"] == ["misc"]
        assert issues[0].message == (
            "The following tags are not allowed: misc. Allowed tags: api, db"
        )

    def test_enforcement_inert_without_descriptions(self, validator, repo_root, enforced):
        """With nothing described there is no vocabulary to enforce."""
        assert validator.validate(draft(tags=["misc"]), enforced, repo_root, described_tags=[]) == []

    def test_not_enforced(self, validator, repo_root):
        """Described tags are ignored while enforcement is off."""
        issues = validator.validate(
            draft(tags=["misc"]), RepositoryConfiguration(), repo_root, described_tags={"api"}
        )
        assert issues == []


class TestMessages:
    """Tests for message strategies and error aggregation."""

    def test_override_single_kind(self, repo_root):
        """Overrides replace only the kinds they name."""
        messages = ValidationMessages({
            ValidationErrorKind.TOO_MANY_TAGS: lambda d: f"max {d['limit']} tags",
        })
        validator = Validator(messages)
        issues = validator.validate(
            draft(tags=["a", "b", "c", "d"], anchors=[]), RepositoryConfiguration(), repo_root
        )
        texts = {issue.kind: issue.message for issue in issues}
        assert texts[ValidationErrorKind.TOO_MANY_TAGS] == "max 3 tags"
        assert texts[ValidationErrorKind.MISSING_ANCHORS] == "At least one anchor path is required"

    def test_unknown_kind(self):
        """Formatting an unknown kind is an error."""
        with pytest.raises(KeyError):
            ValidationMessages().format("bogus", {})

    def test_raise_for_issues_aggregates(self, validator, repo_root):
        """One exception carries every issue and joins their messages."""
        issues = validator.validate(
            draft(anchors=[], view_id=""), RepositoryConfiguration(), repo_root
        )
        with pytest.raises(NoteValidationError) as exc_info:
            raise_for_issues(issues)
        error = exc_info.value
        assert error.code == ErrorCode.NOTE_VALIDATION_FAILED
        assert len(error.issues) == 2
        assert error.message == (
            "Note validation failed: At least one anchor path is required; "
            "A codebase view id is required"
        )

    def test_raise_for_no_issues(self):
        """An empty list raises nothing."""
        raise_for_issues([])
