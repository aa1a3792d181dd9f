"""
Activity: Git Operations — changed files, directory-scoped diffs and guide
diffs for a change scope.
"""

from __future__ import annotations

import logging
import subprocess

import config
from models.errors import VCSError
from models.schemas import ChangeScope, GitMeta

log = logging.getLogger(__name__)


def scope_range(scope: ChangeScope | str) -> list[str]:
    """`git diff` arguments selecting the changes of a scope."""
    scope = ChangeScope.parse(scope)
    if scope == ChangeScope.STAGED:
        return ["--cached"]
    if scope == ChangeScope.HEAD:
        return ["HEAD~1..HEAD"]
    return [f"{config.UPSTREAM_REF}...HEAD"]


def changed_files(repo_path: str, scope: ChangeScope | str) -> list[str]:
    """Added, copied, modified and renamed files of a scope, in git's order.

    Raises VCSError if git cannot answer.
    """
    output = _git_checked(
        repo_path, "diff", *scope_range(scope), "--name-only", "--diff-filter=ACMR",
    )
    files = [
        line.strip() for line in output.splitlines()
        if line.strip() and not line.strip().endswith(config.IGNORED_CHANGE_SUFFIXES)
    ]
    log.info("Scope %s: %d changed file(s)", ChangeScope.parse(scope).value, len(files))
    return files


def diff_for_dir(repo_path: str, scope: ChangeScope | str, directory: str) -> str:
    """Patch of a scope limited to `directory` ("" = whole repository).

    Raises VCSError if git cannot answer.
    """
    return _git_checked(repo_path, "diff", *scope_range(scope), "--patch", "--", directory or ".")


def guide_diff(repo_path: str, guide_path: str) -> str:
    """Working-tree diff of a single guide file (empty if unchanged)."""
    result = _run(repo_path, "--no-pager", "diff", "--unified=3", "--", guide_path)
    if result is None or result.returncode != 0:
        return ""
    return result.stdout


def name_status(repo_path: str) -> list[str]:
    """`git diff --name-status` lines for staged and unstaged changes."""
    lines: list[str] = []
    for args in (("diff", "--cached", "--name-status"), ("diff", "--name-status")):
        result = _run(repo_path, *args)
        if result is not None and result.returncode == 0:
            lines.extend(line for line in result.stdout.splitlines() if line.strip())
    return lines


def git_meta(repo_path: str) -> GitMeta:
    """Branch, short sha and remote URL; placeholders when unavailable."""
    branch = _git(repo_path, "rev-parse", "--abbrev-ref", "HEAD").strip()
    sha = _git(repo_path, "rev-parse", "--short", "HEAD").strip()
    if not branch or not sha:
        return GitMeta()
    remote = config.GIT_REMOTE_HTTP
    if not remote:
        remote = _git(repo_path, "config", "--get", "remote.origin.url").strip()
    return GitMeta(branch=branch, sha=sha, remote=remote)


def _run(repo_path: str, *args: str) -> subprocess.CompletedProcess | None:
    try:
        return subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=repo_path,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        log.warning("git %s could not run: %s", " ".join(args), e)
        return None


def _git(repo_path: str, *args: str) -> str:
    """Run a git command in the target repo; stdout, or "" on failure."""
    result = _run(repo_path, *args)
    if result is None:
        return ""
    if result.returncode != 0:
        log.warning("git %s failed: %s", " ".join(args), result.stderr.strip())
        return ""
    return result.stdout


def _git_checked(repo_path: str, *args: str) -> str:
    """Run a git command whose answer the caller depends on."""
    result = _run(repo_path, *args)
    if result is None:
        raise VCSError(" ".join(args), "git is not available")
    if result.returncode != 0:
        raise VCSError(" ".join(args), result.stderr)
    return result.stdout
