"""
Layer scheduler — orders a guide forest into bottom-up update layers.

Layer 0 holds the leaves. A parent joins the layer after the one in which
its last child was placed, so every guide sits strictly above all of its
children and each guide appears exactly once. Nearest-ancestor links by
directory cannot form a cycle, so no cycle handling is needed here.
"""

from __future__ import annotations

from models.schemas import GuideForest


def build_layers(forest: GuideForest) -> list[list[str]]:
    if not forest.parents:
        return []

    leaves = sorted(g for g in forest.parents if not forest.children.get(g))
    layers = [leaves]
    visited = set(leaves)
    frontier = leaves

    while True:
        ready = set()
        for guide in frontier:
            parent = forest.parents.get(guide)
            if parent is None or parent in visited:
                continue
            if forest.children.get(parent, set()) <= visited:
                ready.add(parent)
        if not ready:
            break
        frontier = sorted(ready)
        layers.append(frontier)
        visited.update(frontier)

    return layers


def layer_index(layers: list[list[str]]) -> dict[str, int]:
    """Guide path -> index of the layer holding it."""
    return {guide: i for i, layer in enumerate(layers) for guide in layer}
