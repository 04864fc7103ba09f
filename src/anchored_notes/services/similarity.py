"""Heuristic note similarity used to spot duplicates before merging.

Scores combine word-level Jaccard similarity of the text with overlap of
anchors and tags. This is deliberately simple; there are no embeddings.
"""
import re
from typing import Dict, Iterable, List, Sequence

from anchored_notes.models.schema import Note, NoteSimilarity

CONTENT_WEIGHT = 0.4
ANCHOR_WEIGHT = 0.3
TAG_WEIGHT = 0.2

# Text overlap below this contributes nothing
CONTENT_THRESHOLD = 0.7
DEFAULT_PAIR_THRESHOLD = 0.6

_WHITESPACE = re.compile(r"\s+")


def _jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def content_similarity(text_a: str, text_b: str) -> float:
    """Jaccard similarity of the lowercased word sets; 1.0 for equal text."""
    a = _WHITESPACE.sub(" ", text_a.lower()).strip()
    b = _WHITESPACE.sub(" ", text_b.lower()).strip()
    if a == b:
        return 1.0
    return _jaccard(a.split(" "), b.split(" "))


def calculate_similarity(note_a: Note, note_b: Note) -> NoteSimilarity:
    """Score two notes between 0 and 1 and explain what contributed."""
    reasons: List[str] = []
    score = 0.0

    content = content_similarity(note_a.content, note_b.content)
    if content > CONTENT_THRESHOLD:
        score += CONTENT_WEIGHT * content
        reasons.append(f"Content similarity: {content * 100:.0f}%")

    anchors = _jaccard(note_a.anchors, note_b.anchors)
    if anchors > 0:
        score += ANCHOR_WEIGHT * anchors
        reasons.append(f"Anchor overlap: {anchors * 100:.0f}%")

    tags = _jaccard(note_a.tags, note_b.tags)
    if tags > 0:
        score += TAG_WEIGHT * tags
        reasons.append(f"Tag overlap: {tags * 100:.0f}%")

    return NoteSimilarity(
        note_a=note_a, note_b=note_b, score=min(score, 1.0), reasons=reasons
    )


def find_similar_note_pairs(
    notes: Sequence[Note], threshold: float = DEFAULT_PAIR_THRESHOLD
) -> List[NoteSimilarity]:
    """Every pair scoring at least ``threshold``, best first."""
    pairs = []
    for i in range(len(notes)):
        for j in range(i + 1, len(notes)):
            similarity = calculate_similarity(notes[i], notes[j])
            if similarity.score >= threshold:
                pairs.append(similarity)
    pairs.sort(key=lambda s: -s.score)
    return pairs


def cluster_similar_notes(
    notes: Sequence[Note], threshold: float = DEFAULT_PAIR_THRESHOLD
) -> List[List[Note]]:
    """Group notes connected by similar pairs; unrelated notes stand alone.

    Clusters are the connected components of the similarity graph, largest
    first.
    """
    parent: Dict[str, str] = {note.id: note.id for note in notes}

    def find(note_id: str) -> str:
        while parent[note_id] != note_id:
            parent[note_id] = parent[parent[note_id]]
            note_id = parent[note_id]
        return note_id

    for pair in find_similar_note_pairs(notes, threshold):
        root_a, root_b = find(pair.note_a.id), find(pair.note_b.id)
        if root_a != root_b:
            parent[root_b] = root_a

    groups: Dict[str, List[Note]] = {}
    for note in notes:
        groups.setdefault(find(note.id), []).append(note)
    return sorted(groups.values(), key=len, reverse=True)
