"""
Guides feature — mapping changes to guides and ordering guide updates.

Public API:
    from features.guides import map_changes, build_forest, build_layers
"""

from features.guides.change_mapper import map_changes
from features.guides.context import child_summaries, make_prompt
from features.guides.layers import build_layers
from features.guides.tree import build_forest, parent_guide

__all__ = [
    "map_changes",
    "build_forest",
    "parent_guide",
    "build_layers",
    "child_summaries",
    "make_prompt",
]
