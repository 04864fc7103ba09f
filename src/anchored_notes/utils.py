"""Small helpers shared across anchored notes."""
import secrets
import time
from typing import Iterable, List

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# Length of the random part of a note id
NOTE_ID_SUFFIX_LENGTH = 9


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_base36(value: int) -> str:
    """Render a non-negative integer in lowercase base 36.

    Example:
        >>> to_base36(35)
        'z'
        >>> to_base36(36)
        '10'
    """
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def random_base36(length: int = NOTE_ID_SUFFIX_LENGTH) -> str:
    """Random lowercase base 36 string of exactly ``length`` characters."""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_note_id(timestamp_ms: int) -> str:
    """Build a note id of the form ``note-<epoch-ms>-<random base36>``."""
    return f"note-{timestamp_ms}-{random_base36()}"


def unique(items: Iterable[str]) -> List[str]:
    """Drop duplicates while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def preview(text: str, limit: int = 100) -> str:
    """Shorten ``text`` to ``limit`` characters followed by '...'.

    Text that already fits is returned unchanged.
    """
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
