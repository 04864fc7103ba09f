"""Token budgets for notes returned to a language model.

A note is measured in the text form it is handed to a model in. Results
are kept in rank order until the next note would overrun the budget.
"""
import json
import logging
from typing import List, Optional, Sequence, Tuple, Union

import tiktoken

from anchored_notes.models.schema import LimitType, Note, RankedNote, TokenLimitInfo
from anchored_notes.services.collaborator_types import TokenCounter

logger = logging.getLogger(__name__)

# GPT-4 family encoding, a close approximation for other models
DEFAULT_ENCODING = "cl100k_base"


class TiktokenCounter:
    """``TokenCounter`` backed by a tiktoken encoding.

    The encoding is loaded on first use, since tiktoken may need to fetch
    it the first time it runs on a machine.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING):
        self.encoding_name = encoding_name
        self._encoding = None

    def count(self, text: str) -> int:
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return len(self._encoding.encode(text))


def format_note_for_tokens(note: Note) -> str:
    parts = [
        f"Note ID: {note.id}",
        f"Tags: {', '.join(note.tags)}",
        f"Anchors: {', '.join(note.anchors)}",
        f"Content: {note.content}",
    ]
    if note.metadata:
        parts.append(f"Metadata: {json.dumps(note.metadata)}")
    return "\n".join(parts)


def count_note_tokens(note: Note, counter: TokenCounter) -> int:
    return counter.count(format_note_for_tokens(note))


def fit_to_token_budget(
    results: Sequence[RankedNote],
    max_tokens: int,
    counter: TokenCounter,
) -> Tuple[List[RankedNote], TokenLimitInfo]:
    """Keep leading results while they fit in ``max_tokens``.

    The first result is always kept, even when it alone is over budget.

    Returns:
        The kept results and a summary of the budget.
    """
    sizes = [count_note_tokens(r.note, counter) for r in results]

    kept: List[RankedNote] = []
    used = 0
    for result, size in zip(results, sizes):
        if used + size > max_tokens:
            break
        kept.append(result)
        used += size

    info = TokenLimitInfo(
        total_notes=len(results),
        included_notes=len(kept),
        total_tokens=sum(sizes),
        used_tokens=used,
        remaining_tokens=max_tokens - used,
        truncated=len(kept) < len(results),
    )

    if not kept and results:
        kept = [results[0]]
    logger.debug(
        f"Token budget {max_tokens}: kept {len(kept)}/{len(results)} note(s), "
        f"{used} token(s) used"
    )
    return kept, info


def apply_limit(
    results: List[RankedNote],
    limit: Optional[int],
    limit_type: Union[LimitType, str] = LimitType.COUNT,
    counter: Optional[TokenCounter] = None,
) -> Tuple[List[RankedNote], Optional[TokenLimitInfo]]:
    """Cut ranked results down to ``limit`` notes or ``limit`` tokens.

    Either way at least one result survives when there was any. Token info
    is only returned for token limits.
    """
    if limit is None:
        return results, None
    if LimitType(limit_type) == LimitType.TOKENS:
        return fit_to_token_budget(results, limit, counter or TiktokenCounter())
    return results[:max(1, limit)], None
