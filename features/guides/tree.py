"""
Guide tree — nearest-ancestor parent links among a run's guides.

The tree is scoped to the guides passed in: a guide only becomes a parent if
it is in the same set, so two runs over the same repository can produce
different forests.
"""

from __future__ import annotations

import posixpath
from typing import Iterable

from models.schemas import GuideForest


def parent_guide(guide: str, guides: set[str], filenames: list[str]) -> str | None:
    """Nearest guide in `guides` above `guide`'s directory, or None."""
    directory = posixpath.dirname(guide)
    while directory:
        directory = posixpath.dirname(directory)
        for name in filenames:
            candidate = posixpath.join(directory, name) if directory else name
            if candidate != guide and candidate in guides:
                return candidate
    return None


def build_forest(guides: Iterable[str], filenames: list[str]) -> GuideForest:
    """Parent pointers and child sets for every guide in `guides`."""
    guide_set = set(guides)
    forest = GuideForest()
    for guide in sorted(guide_set):
        parent = parent_guide(guide, guide_set, filenames)
        forest.parents[guide] = parent
        if parent:
            forest.children.setdefault(parent, set()).add(guide)
    return forest
