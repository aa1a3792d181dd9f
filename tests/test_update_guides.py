"""
Tests for the guide update activity with the LLM call patched out.
"""

import pytest

from activities import update_guides
from models.schemas import UpdateResult
from utils.llm import is_no_changes, strip_fences


@pytest.fixture
def repo(make_repo):
    return make_repo("svc/agents.md", content="# Service\n\nRun `make dev`.\n")


def reply_with(monkeypatch, text=None, error=None):
    def fake_chat(system, user, model=None, **kwargs):
        if error:
            raise error
        return text

    monkeypatch.setattr(update_guides, "chat", fake_chat)


class TestUpdateGuide:

    def test_writes_changed_guide(self, repo, monkeypatch):
        reply_with(monkeypatch, "# Service\n\nRun `make run`.")

        result = update_guides.update_guide(str(repo), "svc/agents.md", "prompt")

        assert result == UpdateResult(success=True, changed=True)
        assert (repo / "svc/agents.md").read_text() == "# Service\n\nRun `make run`.\n"

    def test_no_changes_reply(self, repo, monkeypatch):
        reply_with(monkeypatch, "NO-CHANGES")

        result = update_guides.update_guide(str(repo), "svc/agents.md", "prompt")

        assert result == UpdateResult(success=True, changed=False)
        assert (repo / "svc/agents.md").read_text() == "# Service\n\nRun `make dev`.\n"

    def test_identical_text_is_unchanged(self, repo, monkeypatch):
        reply_with(monkeypatch, "```markdown\n# Service\n\nRun `make dev`.\n```")

        result = update_guides.update_guide(str(repo), "svc/agents.md", "prompt")

        assert result.changed is False
        assert result.success is True

    def test_llm_error_is_a_failed_result(self, repo, monkeypatch):
        reply_with(monkeypatch, error=RuntimeError("503 from upstream"))

        result = update_guides.update_guide(str(repo), "svc/agents.md", "prompt")

        assert result.success is False
        assert "503" in result.error

    def test_empty_reply_fails(self, repo, monkeypatch):
        reply_with(monkeypatch, "   ")

        result = update_guides.update_guide(str(repo), "svc/agents.md", "prompt")

        assert result.success is False

    def test_missing_guide_fails(self, repo, monkeypatch):
        reply_with(monkeypatch, "anything")

        result = update_guides.update_guide(str(repo), "gone/agents.md", "prompt")

        assert result.success is False
        assert "Cannot read guide" in result.error


class TestReplyParsing:

    def test_no_changes_variants(self):
        assert is_no_changes("NO-CHANGES")
        assert is_no_changes("  no-changes\n")
        assert is_no_changes("`NO CHANGES`")
        assert not is_no_changes("# Guide\nNO-CHANGES below")

    def test_strip_fences(self):
        assert strip_fences("```markdown\n# A\n```") == "# A"
        assert strip_fences("```\n# A\nB\n```\n") == "# A\nB"
        assert strip_fences("# A") == "# A"
