"""
Tests for whole-repository guide discovery, the tree view and coverage.
"""

from unittest.mock import MagicMock

from features.guides.registry import discover_guides, guide_tree, render_tree, sync_registry
from models.schemas import Guide, GuideStatus
from utils.repo_scanner import GuideReader

FILENAMES = ["agents.md", "CLAUDE.md"]


class TestDiscoverGuides:

    def test_parents_and_hashes(self, make_repo):
        repo = make_repo("agents.md", "svc/agents.md", "svc/api/CLAUDE.md", "node_modules/x/agents.md")

        guides = discover_guides(GuideReader(repo), FILENAMES)

        by_path = {g.path: g for g in guides}
        assert sorted(by_path) == ["agents.md", "svc/agents.md", "svc/api/CLAUDE.md"]
        assert by_path["svc/api/CLAUDE.md"].parent_path == "svc/agents.md"
        assert by_path["agents.md"].parent_path is None
        assert len(by_path["svc/agents.md"].last_known_hash) == 64

    def test_known_status_survives(self, make_repo):
        repo = make_repo("svc/agents.md")
        known = {"svc/agents.md": Guide(path="svc/agents.md", status=GuideStatus.DRAFT)}

        [guide] = discover_guides(GuideReader(repo), FILENAMES, known)

        assert guide.status == GuideStatus.DRAFT

    def test_intent_directory_skipped(self, make_repo):
        repo = make_repo(".intent/agents.md", "agents.md")
        assert [g.path for g in discover_guides(GuideReader(repo), FILENAMES)] == ["agents.md"]


class TestGuideTree:

    def test_nodes_and_coverage(self):
        guides = [
            Guide(path="agents.md"),
            Guide(path="a/agents.md", parent_path="agents.md"),
            Guide(path="b/agents.md", parent_path="agents.md", status=GuideStatus.DRAFT),
        ]

        tree = guide_tree(guides)

        root = next(n for n in tree["nodes"] if n["path"] == "agents.md")
        assert root["children"] == ["a/agents.md", "b/agents.md"]
        assert root["status"] == "active"
        assert tree["coverage"] == {"total": 3, "active": 2, "draft": 1}

    def test_render(self):
        guides = [
            Guide(path="agents.md"),
            Guide(path="a/agents.md", parent_path="agents.md", status=GuideStatus.DRAFT),
        ]

        assert render_tree(guides) == "├── agents.md\n  ├── a/agents.md (draft)"


class TestSyncRegistry:

    def test_without_database(self, make_repo):
        repo = make_repo("svc/agents.md")
        guides = sync_registry(GuideReader(repo), FILENAMES)
        assert [g.path for g in guides] == ["svc/agents.md"]

    def test_upserts_and_keeps_stored_status(self, make_repo):
        repo = make_repo("svc/agents.md", "lib/agents.md")
        db = MagicMock()
        db.list_guides.return_value = [
            {"path": "svc/agents.md", "parent_path": None, "status": "draft", "last_hash": "old"},
        ]

        guides = sync_registry(GuideReader(repo), FILENAMES, db)

        assert {g.path: g.status for g in guides} == {
            "lib/agents.md": GuideStatus.ACTIVE,
            "svc/agents.md": GuideStatus.DRAFT,
        }
        rows = [c.args[0] for c in db.upsert_guide.call_args_list]
        assert {r["path"] for r in rows} == {"lib/agents.md", "svc/agents.md"}
        assert all(isinstance(r["status"], str) for r in rows)
        assert all(r["last_known_hash"] != "old" for r in rows)
