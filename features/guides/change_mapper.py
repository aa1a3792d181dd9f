"""
Change mapper — finds the guides that cover a set of changed files.

A guide covers a change when the guide's directory is the changed file's
directory or one of its ancestors. There is at most one guide per directory
level; at each level the guide filenames are consulted in priority order and
the first one present wins.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Iterable, Protocol

log = logging.getLogger(__name__)


class GuideLookup(Protocol):
    def exists(self, rel: str) -> bool: ...

    def find_guide(self, directory: str, filenames: list[str]) -> str | None: ...


def ancestor_dirs(path: str) -> list[str]:
    """Directories from `path`'s own directory up to the repository root ("")."""
    dirs = []
    current = posixpath.dirname(path.strip("/"))
    while True:
        dirs.append(current)
        if not current:
            break
        current = posixpath.dirname(current)
    return dirs


def guides_for_file(path: str, filenames: list[str], reader: GuideLookup) -> list[str]:
    """All guides covering one file, nearest first."""
    found = []
    for directory in ancestor_dirs(path):
        guide = reader.find_guide(directory, filenames)
        if guide:
            found.append(guide)
    return found


def map_changes(
    changed_files: Iterable[str],
    filenames: list[str],
    reader: GuideLookup,
) -> set[str]:
    """Union of covering guides across all changed files.

    Files that no longer exist on disk (deletions) are skipped.
    """
    affected: set[str] = set()
    for path in changed_files:
        if not reader.exists(path):
            log.debug("Skipping %s (not on disk)", path)
            continue
        affected.update(guides_for_file(path, filenames, reader))
    return affected
