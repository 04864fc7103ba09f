"""Tests for duplicate detection heuristics."""
import pytest

from anchored_notes.models.schema import Note
from anchored_notes.services.similarity import (
    calculate_similarity,
    cluster_similar_notes,
    content_similarity,
    find_similar_note_pairs,
)


def note(note_id, content, anchors=("src/app.py",), tags=("api",)):
    return Note(
        id=note_id,
        content=content,
        anchors=list(anchors),
        tags=list(tags),
        timestamp=1,
        view_id="v",
    )


class TestContentSimilarity:
    """Tests for word-level text similarity."""

    def test_case_and_whitespace_insensitive(self):
        """Equal text after normalization scores 1."""
        assert content_similarity("Hello   World", " hello world ") == 1.0

    def test_jaccard(self):
        """Partial overlap is intersection over union of words."""
        assert content_similarity("a b c d", "a b c e") == pytest.approx(3 / 5)

    def test_disjoint(self):
        """No shared words scores 0."""
        assert content_similarity("alpha beta", "gamma delta") == 0.0


class TestNoteSimilarity:
    """Tests for the weighted score."""

    def test_duplicates(self):
        """Identical notes get every component."""
        result = calculate_similarity(note("a", "Same text"), note("b", "same text"))
        assert result.score == pytest.approx(0.9)
        assert result.reasons == [
            "Content similarity: 100%",
            "Anchor overlap: 100%",
            "Tag overlap: 100%",
        ]

    def test_weak_content_ignored(self):
        """Text overlap below the threshold contributes nothing."""
        result = calculate_similarity(
            note("a", "a b c d", tags=()), note("b", "a b c e", tags=())
        )
        assert result.score == pytest.approx(0.3)
        assert result.reasons == ["Anchor overlap: 100%"]

    def test_unrelated(self):
        """Nothing shared scores 0."""
        result = calculate_similarity(
            note("a", "first", anchors=["x.py"], tags=["t1"]),
            note("b", "second", anchors=["y.py"], tags=["t2"]),
        )
        assert result.score == 0.0
        assert result.reasons == []


class TestPairsAndClusters:
    """Tests for grouping similar notes."""

    @pytest.fixture
    def notes(self):
        return [
            note("a", "Retry on timeout"),
            note("b", "retry on timeout"),
            note("c", "Unrelated thing", anchors=["docs/x.md"], tags=["docs"]),
            note("d", "retry ON timeout"),
        ]

    def test_pairs(self, notes):
        """Pairs at or above the threshold are returned best first."""
        pairs = find_similar_note_pairs(notes)
        assert {(p.note_a.id, p.note_b.id) for p in pairs} == {("a", "b"), ("a", "d"), ("b", "d")}
        assert all(p.score >= 0.6 for p in pairs)

    def test_threshold(self, notes):
        """A threshold above every score finds nothing."""
        assert find_similar_note_pairs(notes, threshold=0.95) == []

    def test_clusters(self, notes):
        """Connected notes cluster together; others stand alone."""
        clusters = cluster_similar_notes(notes)
        assert [[n.id for n in c] for c in clusters] == [["a", "b", "d"], ["c"]]
