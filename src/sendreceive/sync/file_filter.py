"""Decide which project files take part in version control.

Pattern rules:

1. A path is tracked iff it matches at least one include pattern and no
   exclude pattern.  No include patterns means nothing is tracked.
2. ``*``, ``?`` and ``[...]`` match within one path segment
   (``fnmatch`` semantics, case-sensitive); ``**`` matches zero or more
   whole directories.
3. A pattern without ``/`` matches the file name at any depth.
4. A pattern containing ``/`` is anchored at the project root.  A leading
   ``/`` is allowed and only marks the anchor.
5. A pattern ending in ``/`` names a directory: everything beneath it.

Paths are POSIX-style and relative to the project root; backslashes are
normalised to ``/``.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

# Backend metadata directories never offered to the filter
METADATA_DIRS = frozenset({".git", ".hg"})


def is_tracked(
    relative_path: str,
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
) -> bool:
    """Return ``True`` if *relative_path* should be under version control.

    Args:
        relative_path: Path relative to the project root.
        include_patterns: Glob patterns selecting files to track.
        exclude_patterns: Glob patterns that override the includes.

    Returns:
        ``True`` iff some include pattern matches and no exclude does.
    """
    parts = _split(relative_path)
    if not parts:
        return False
    if not any(_matches(parts, p) for p in include_patterns):
        return False
    return not any(_matches(parts, p) for p in exclude_patterns)


class FileFilter:
    """Include/exclude patterns bundled for repeated queries.

    Args:
        include_patterns: Glob patterns selecting files to track.
        exclude_patterns: Glob patterns that override the includes.
    """

    def __init__(
        self,
        include_patterns: Iterable[str],
        exclude_patterns: Iterable[str] = (),
    ) -> None:
        self.include_patterns = tuple(include_patterns)
        self.exclude_patterns = tuple(exclude_patterns)

    @classmethod
    def from_configuration(cls, config) -> FileFilter:
        """Build a filter from a ``ProjectConfiguration``."""
        return cls(config.include_patterns, config.exclude_patterns)

    def is_tracked(self, relative_path: str) -> bool:
        return is_tracked(
            relative_path, self.include_patterns, self.exclude_patterns
        )

    def discover(self, root: Path) -> list[str]:
        """Walk *root* and return every tracked file.

        Backend metadata directories (``.git``, ``.hg``) are not entered.

        Args:
            root: The project folder.

        Returns:
            Sorted POSIX paths relative to *root*.
        """
        if not root.is_dir():
            return []

        tracked: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in METADATA_DIRS]
            rel_dir = Path(dirpath).relative_to(root)
            for name in filenames:
                rel = (rel_dir / name).as_posix()
                if self.is_tracked(rel):
                    tracked.append(rel)
        return sorted(tracked)


def lift_project_patterns() -> tuple[list[str], list[str]]:
    """Standard ``(include, exclude)`` patterns for a LIFT lexicon project.

    Lexicon data, ranges and writing-system definitions are tracked, as are
    the picture/audio/other media folders.  Exports and video files are
    left out, except the custom stylesheets kept in the export folder.
    """
    include = [
        "*.lift",
        "*.lift-ranges",
        "WritingSystems/*.ldml",
        "export/custom*.css",
        "pictures/**",
        "audio/**",
        "others/**",
    ]
    exclude = [
        "export/*.lift",
        "*.wmv",
        "*.mov",
        "*.avi",
        "*.mp4",
        "*.mpg",
        "*.mpeg",
    ]
    return include, exclude


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _split(path: str) -> list[str]:
    return [p for p in path.replace("\\", "/").split("/") if p and p != "."]


def _matches(parts: list[str], pattern: str) -> bool:
    pattern = pattern.replace("\\", "/").strip()
    if not pattern:
        return False

    if "/" not in pattern:
        return fnmatch.fnmatchcase(parts[-1], pattern)

    if pattern.endswith("/"):
        pattern += "**"
    return _match_parts(parts, _split(pattern))


def _match_parts(parts: list[str], pats: list[str]) -> bool:
    if not pats:
        return not parts

    head = pats[0]
    if head == "**":
        rest = pats[1:]
        return any(
            _match_parts(parts[i:], rest) for i in range(len(parts) + 1)
        )

    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_parts(
        parts[1:], pats[1:]
    )
