"""
Tests for git queries. `_run` is patched; one test drives a real repository
when git is installed.
"""

import shutil
import subprocess

import pytest

from activities import git_ops
from models.errors import VCSError
from models.schemas import ChangeScope, GitMeta


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def git_calls(monkeypatch):
    """Record git invocations and answer them from a queue."""
    calls = []
    replies = []

    def fake_run(repo_path, *args):
        calls.append(args)
        return replies.pop(0) if replies else completed()

    monkeypatch.setattr(git_ops, "_run", fake_run)
    return calls, replies


class TestScopeRange:

    def test_mapping(self, monkeypatch):
        monkeypatch.setattr(git_ops.config, "UPSTREAM_REF", "origin/main")
        assert git_ops.scope_range(ChangeScope.STAGED) == ["--cached"]
        assert git_ops.scope_range("head") == ["HEAD~1..HEAD"]
        assert git_ops.scope_range("pr") == ["origin/main...HEAD"]


class TestChangedFiles:

    def test_filters_markdown_and_blank_lines(self, git_calls):
        calls, replies = git_calls
        replies.append(completed("src/app.py\nREADME.md\n\nsrc/agents.md\nlib/util.py\n"))

        files = git_ops.changed_files("/repo", ChangeScope.STAGED)

        assert files == ["src/app.py", "lib/util.py"]
        assert calls[0] == ("diff", "--cached", "--name-only", "--diff-filter=ACMR")

    def test_git_error_raises(self, git_calls):
        _, replies = git_calls
        replies.append(completed(returncode=128, stderr="fatal: not a git repository"))

        with pytest.raises(VCSError, match="not a git repository"):
            git_ops.changed_files("/repo", "head")

    def test_git_missing_raises(self, monkeypatch):
        monkeypatch.setattr(git_ops, "_run", lambda repo_path, *args: None)

        with pytest.raises(VCSError, match="git is not available"):
            git_ops.changed_files("/repo", "staged")


class TestDiffForDir:

    def test_scoped_to_directory(self, git_calls):
        calls, replies = git_calls
        replies.append(completed("diff --git a/svc/x.py b/svc/x.py\n"))

        diff = git_ops.diff_for_dir("/repo", "head", "svc")

        assert diff.startswith("diff --git")
        assert calls[0] == ("diff", "HEAD~1..HEAD", "--patch", "--", "svc")

    def test_root_directory(self, git_calls):
        calls, _ = git_calls
        git_ops.diff_for_dir("/repo", "staged", "")
        assert calls[0][-1] == "."

    def test_failure_raises(self, git_calls):
        _, replies = git_calls
        replies.append(completed(returncode=128, stderr="bad revision 'origin/main...HEAD'"))

        with pytest.raises(VCSError):
            git_ops.diff_for_dir("/repo", "pr", "svc")


class TestGuideDiff:

    def test_failure_is_empty(self, git_calls):
        _, replies = git_calls
        replies.append(completed(returncode=1, stderr="error"))
        assert git_ops.guide_diff("/repo", "svc/agents.md") == ""


class TestGitMeta:

    def test_meta(self, git_calls, monkeypatch):
        monkeypatch.setattr(git_ops.config, "GIT_REMOTE_HTTP", "")
        _, replies = git_calls
        replies.extend([completed("main\n"), completed("abc1234\n"), completed("git@host:repo.git\n")])

        assert git_ops.git_meta("/repo") == GitMeta(branch="main", sha="abc1234", remote="git@host:repo.git")

    def test_remote_override(self, git_calls, monkeypatch):
        monkeypatch.setattr(git_ops.config, "GIT_REMOTE_HTTP", "https://example.com/repo")
        calls, replies = git_calls
        replies.extend([completed("main\n"), completed("abc1234\n")])

        assert git_ops.git_meta("/repo").remote == "https://example.com/repo"
        assert len(calls) == 2

    def test_placeholders_outside_a_repository(self, git_calls):
        _, replies = git_calls
        replies.extend([completed(returncode=128), completed(returncode=128)])

        assert git_ops.git_meta("/repo") == GitMeta()


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestRealRepository:

    def _git(self, repo, *args):
        subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)

    def test_staged_changes(self, tmp_path):
        self._git(tmp_path, "init", "-q")
        (tmp_path / "svc").mkdir()
        (tmp_path / "svc" / "agents.md").write_text("# svc\n")
        (tmp_path / "svc" / "app.py").write_text("print('hi')\n")
        self._git(tmp_path, "add", ".")

        files = git_ops.changed_files(str(tmp_path), ChangeScope.STAGED)
        diff = git_ops.diff_for_dir(str(tmp_path), ChangeScope.STAGED, "svc")

        assert files == ["svc/app.py"]
        assert "print('hi')" in diff
