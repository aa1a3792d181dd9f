"""
Shared fixtures: throwaway repositories on disk and a scripted GuideSyncIO.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from models.schemas import ChangeScope, ChangeSet, GuideContext, UpdateResult


@pytest.fixture
def make_repo(tmp_path):
    """Create files under a temporary repository root and return the root."""

    def _make(*paths: str, content: str = "# guide\n") -> Path:
        for rel in paths:
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return tmp_path

    return _make


class FakeGuideIO:
    """Scripted side effects for the orchestrator.

    `diffs` maps guide -> directory diff (guides absent from it have no
    changes). `results` maps guide -> UpdateResult or an exception to raise;
    the default is an update that changed the guide.
    """

    def __init__(
        self,
        affected: list[str],
        diffs: dict[str, str] | None = None,
        results: dict[str, UpdateResult | Exception] | None = None,
        detect_error: Exception | None = None,
        context_error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.affected = affected
        self.diffs = diffs if diffs is not None else {g: f"diff for {g}" for g in affected}
        self.results = results or {}
        self.detect_error = detect_error
        self.context_error = context_error
        self.delay = delay
        self.prompts: dict[str, str] = {}
        self.contexts: dict[str, GuideContext] = {}
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def detect_changes(self, scope: ChangeScope) -> ChangeSet:
        self.calls.append(("detect", scope.value))
        if self.detect_error:
            raise self.detect_error
        return ChangeSet(scope=scope, changed_files=("src/x.py",), affected_guides=tuple(sorted(self.affected)))

    async def load_contexts(self, change_set: ChangeSet) -> list[GuideContext]:
        self.calls.append(("contexts", ",".join(change_set.affected_guides)))
        if self.context_error:
            raise self.context_error
        contexts = []
        for guide in change_set.affected_guides:
            if guide in self.diffs:
                context = GuideContext(
                    guide_path=guide,
                    dir_path=guide.rpartition("/")[0],
                    scope=change_set.scope,
                    diff=self.diffs[guide],
                    current_guide="# guide\n",
                )
                self.contexts[guide] = context
                contexts.append(context)
        return contexts

    async def update_guide(self, guide_path: str, prompt: str) -> UpdateResult:
        self.calls.append(("update", guide_path))
        self.prompts[guide_path] = prompt
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        result = self.results.get(guide_path, UpdateResult(success=True, changed=True))
        if isinstance(result, Exception):
            raise result
        return result

    async def guide_diff(self, guide_path: str) -> str:
        return f"--- {guide_path}\n+++ {guide_path}\n+updated"


@pytest.fixture
def fake_io():
    return FakeGuideIO
