"""Protocols for the collaborators the services consume.

Implementations only need to match these shapes structurally. The
package ships ``IgnoreFileEnumerator`` for the file listing and
``TiktokenCounter`` for token budgets. Guidance token checking is always
supplied by the caller.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Protocol, runtime_checkable

from anchored_notes.models.schema import EligibleFiles


@runtime_checkable
class EligibleFileEnumerator(Protocol):
    """Lists the files and directories a coverage audit should consider."""

    def enumerate(
        self,
        root: Path,
        include_directories: bool = True,
        extra_ignore_patterns: Optional[Sequence[str]] = None,
    ) -> EligibleFiles:
        """Return eligible files and directories relative to ``root``.

        Args:
            root: Canonical repository root.
            include_directories: Also report directories.
            extra_ignore_patterns: Patterns to exclude on top of ignore files.

        Returns:
            Entries sorted by relative path.
        """
        ...


@runtime_checkable
class GuidanceTokenValidator(Protocol):
    """Decides whether a caller-supplied guidance token is acceptable."""

    def validate(self, token: str, root: Path) -> bool:
        """True when ``token`` proves the caller read the repository guidance."""
        ...


@runtime_checkable
class TokenCounter(Protocol):
    """Counts model tokens in a piece of text."""

    def count(self, text: str) -> int:
        ...
