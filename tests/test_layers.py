"""
Tests for bottom-up layer scheduling.
"""

from features.guides.layers import build_layers, layer_index
from features.guides.tree import build_forest
from models.schemas import GuideForest

FILENAMES = ["agents.md", "CLAUDE.md"]


def layers_for(guides):
    return build_layers(build_forest(guides, FILENAMES))


def assert_partition(guides, layers):
    flat = [g for layer in layers for g in layer]
    assert sorted(flat) == sorted(set(guides))
    assert len(flat) == len(set(flat))


def assert_parents_above_children(guides, layers):
    forest = build_forest(guides, FILENAMES)
    index = layer_index(layers)
    for child, parent in forest.parents.items():
        if parent is not None:
            assert index[parent] > index[child], f"{parent} must sit above {child}"


class TestBuildLayers:

    def test_siblings_then_parent(self):
        guides = ["a/agents.md", "a/b/agents.md", "a/c/agents.md"]
        assert layers_for(guides) == [["a/b/agents.md", "a/c/agents.md"], ["a/agents.md"]]

    def test_chain(self):
        guides = ["x/agents.md", "x/y/agents.md", "x/y/z/agents.md"]
        assert layers_for(guides) == [["x/y/z/agents.md"], ["x/y/agents.md"], ["x/agents.md"]]

    def test_single_guide(self):
        assert layers_for(["solo/agents.md"]) == [["solo/agents.md"]]

    def test_empty(self):
        assert build_layers(GuideForest()) == []
        assert layers_for([]) == []

    def test_shared_ancestor_waits_for_deeper_branch(self):
        # root has a leaf child (a) and a child (b) with its own leaf child (b/c)
        guides = ["agents.md", "a/agents.md", "b/agents.md", "b/c/agents.md"]
        layers = layers_for(guides)

        assert layers == [["a/agents.md", "b/c/agents.md"], ["b/agents.md"], ["agents.md"]]
        assert_partition(guides, layers)
        assert_parents_above_children(guides, layers)

    def test_uneven_depths_across_roots(self):
        guides = [
            "svc/agents.md", "svc/api/agents.md", "svc/api/v1/agents.md",
            "lib/agents.md", "lib/util/agents.md",
            "docs/CLAUDE.md",
        ]
        layers = layers_for(guides)

        assert layers[0] == ["docs/CLAUDE.md", "lib/util/agents.md", "svc/api/v1/agents.md"]
        assert_partition(guides, layers)
        assert_parents_above_children(guides, layers)

    def test_partition_and_ordering_on_wide_tree(self):
        guides = ["agents.md"] + [f"m{i}/agents.md" for i in range(5)] + [
            f"m{i}/sub/agents.md" for i in range(0, 5, 2)
        ]
        layers = layers_for(guides)

        assert_partition(guides, layers)
        assert_parents_above_children(guides, layers)
        assert layers[-1] == ["agents.md"]

    def test_layers_are_sorted(self):
        layers = layers_for(["z/agents.md", "a/agents.md", "m/agents.md"])
        assert layers == [["a/agents.md", "m/agents.md", "z/agents.md"]]


class TestLayerIndex:

    def test_maps_each_guide(self):
        assert layer_index([["a", "b"], ["c"]]) == {"a": 0, "b": 0, "c": 1}
