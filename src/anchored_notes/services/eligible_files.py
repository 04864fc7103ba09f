"""Default eligible-file enumerator driven by ignore files.

Reads ``.gitignore`` and the project ignore file at the repository root
and applies their patterns with ``fnmatch``. This covers the common
gitignore forms (comments, ``!`` negation, trailing ``/`` for directories,
leading ``/`` or inner ``/`` for root-anchored patterns, ``**/`` prefixes)
but not every corner of git's matcher. Nested ignore files are not read.
"""
import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from anchored_notes.config import config
from anchored_notes.models.schema import EligibleFiles, FileInfo
from anchored_notes.paths import GIT_MARKER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str
    negated: bool = False
    directory_only: bool = False
    anchored: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnoreRule"]:
        """Build a rule from one ignore-file line; None for blanks and comments."""
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        negated = text.startswith("!")
        if negated:
            text = text[1:]
        directory_only = text.endswith("/")
        text = text.rstrip("/")
        floating = text.startswith("**/")
        if floating:
            text = text[3:]
        anchored = "/" in text and not floating
        text = text.lstrip("/")
        if not text:
            return None
        return cls(text, negated, directory_only, anchored)

    def matches(self, relative_path: str, is_directory: bool) -> bool:
        if self.directory_only and not is_directory:
            return False
        if self.anchored:
            return fnmatch.fnmatchcase(relative_path, self.pattern)
        if "/" in self.pattern:
            # From a "**/" prefix: match at any depth
            parts = relative_path.split("/")
            return any(
                fnmatch.fnmatchcase("/".join(parts[i:]), self.pattern)
                for i in range(len(parts))
            )
        name = relative_path.rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(name, self.pattern)


def parse_ignore_lines(lines: Iterable[str]) -> List[IgnoreRule]:
    rules = []
    for line in lines:
        rule = IgnoreRule.parse(line)
        if rule is not None:
            rules.append(rule)
    return rules


def is_ignored(rules: Sequence[IgnoreRule], relative_path: str, is_directory: bool) -> bool:
    """Apply ``rules`` in order; the last matching rule decides."""
    ignored = False
    for rule in rules:
        if rule.matches(relative_path, is_directory):
            ignored = not rule.negated
    return ignored


class IgnoreFileEnumerator:
    """Walks the repository and reports files not excluded by ignore rules.

    ``.git`` and the notes data directory are always excluded. Dotfiles are
    included. A missing ``.gitignore`` simply contributes no rules.
    """

    def __init__(
        self,
        data_dir_name: Optional[str] = None,
        ignore_file_names: Optional[Sequence[str]] = None,
    ):
        self.data_dir_name = data_dir_name or config.data_dir_name
        self.ignore_file_names = list(
            ignore_file_names or (".gitignore", config.ignore_file_name)
        )

    def load_rules(self, root: Path, extra_patterns: Optional[Sequence[str]] = None) -> List[IgnoreRule]:
        lines: List[str] = []
        for name in self.ignore_file_names:
            path = root / name
            if not path.is_file():
                continue
            try:
                lines.extend(path.read_text(encoding="utf-8").splitlines())
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read ignore file {path}: {e}")
        lines.extend(extra_patterns or [])
        return parse_ignore_lines(lines)

    def enumerate(
        self,
        root: Path,
        include_directories: bool = True,
        extra_ignore_patterns: Optional[Sequence[str]] = None,
    ) -> EligibleFiles:
        rules = self.load_rules(root, extra_ignore_patterns)
        always_skip = {GIT_MARKER, self.data_dir_name}
        files: List[FileInfo] = []
        directories: List[FileInfo] = []

        for dirpath, dirnames, filenames in os.walk(root):
            base = Path(dirpath)
            rel_base = base.relative_to(root).as_posix()
            prefix = "" if rel_base == "." else rel_base + "/"

            kept_dirs = []
            for name in sorted(dirnames):
                rel = prefix + name
                if name in always_skip or is_ignored(rules, rel, True):
                    continue
                kept_dirs.append(name)
                if include_directories:
                    directories.append(FileInfo(relative_path=rel, is_directory=True))
            # Prune in place so os.walk skips ignored subtrees
            dirnames[:] = kept_dirs

            for name in filenames:
                rel = prefix + name
                if name == GIT_MARKER or is_ignored(rules, rel, False):
                    continue
                try:
                    size: Optional[int] = (base / name).stat().st_size
                except OSError:
                    size = None
                files.append(FileInfo(
                    relative_path=rel,
                    size=size,
                    extension=os.path.splitext(name)[1][1:],
                ))

        files.sort(key=lambda f: f.relative_path)
        directories.sort(key=lambda d: d.relative_path)
        return EligibleFiles(files=files, directories=directories)
