"""
In-process runner — the layered update without a Temporal server.

Blocking activities (git, file IO, OpenAI) run in the default executor so
a layer's guide updates still proceed concurrently.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path

import config
from activities.build_context import load_layer_contexts
from activities.decisions import write_decision_record
from activities.detect_changes import detect_changes
from activities.git_ops import diff_for_dir
from activities.update_guides import guide_diff, update_guide
from features.runs.events import RunEventSink
from features.runs.store import RunStateStore
from models.errors import VCSError
from models.schemas import ChangeScope, ChangeSet, FinalizePolicy, GuideContext, RunReport, UpdateResult
from workflows.orchestrator import LayeredOrchestrator

log = logging.getLogger(__name__)


class LocalGuideIO:
    """GuideSyncIO backed by direct activity calls."""

    def __init__(self, repo_path: str, model: str | None = None, guide_filenames: list[str] | None = None):
        self.repo_path = repo_path
        self.model = model
        self.guide_filenames = guide_filenames or config.ALL_GUIDE_FILENAMES

    async def _call(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def detect_changes(self, scope: ChangeScope) -> ChangeSet:
        return await self._call(detect_changes, self.repo_path, scope.value, self.guide_filenames)

    async def load_contexts(self, change_set: ChangeSet) -> list[GuideContext]:
        return await self._call(load_layer_contexts, self.repo_path, change_set)

    async def update_guide(self, guide_path: str, prompt: str) -> UpdateResult:
        return await self._call(update_guide, self.repo_path, guide_path, prompt, self.model)

    async def guide_diff(self, guide_path: str) -> str:
        return await self._call(guide_diff, self.repo_path, guide_path)


async def run_inprocess(
    repo_path: str,
    scope: ChangeScope | str,
    store: RunStateStore,
    *,
    model: str | None = None,
    policy: FinalizePolicy | str | None = None,
    events: RunEventSink | None = None,
    write_adr: bool = False,
) -> RunReport:
    """Run the layered update against `repo_path` and save a JSON run log."""
    model = model or config.OPENAI_MODEL
    orchestrator = LayeredOrchestrator(
        LocalGuideIO(repo_path, model),
        store,
        policy=policy,
        model=model,
        events=events,
    )
    report = await orchestrator.run(scope)

    if write_adr:
        report.decision = await _write_adr(repo_path, report)
    report.log_file = save_run_log(report.run.id, report_to_dict(report))
    return report


async def _write_adr(repo_path: str, report: RunReport) -> dict | None:
    loop = asyncio.get_running_loop()
    guides = [g for lr in report.layers for g in lr.guides]
    if not guides:
        return None
    guide_diffs = {}
    for guide in guides:
        diff = await loop.run_in_executor(None, guide_diff, repo_path, guide)
        if diff.strip():
            guide_diffs[guide] = diff
    try:
        code_diff = await loop.run_in_executor(None, diff_for_dir, repo_path, report.run.scope, "")
    except VCSError as e:
        log.warning("Could not collect code diff for ADR: %s", e)
        code_diff = ""
    return await loop.run_in_executor(None, write_decision_record, repo_path, guide_diffs, code_diff)


def report_to_dict(report: RunReport) -> dict:
    """JSON-ready run record; str enums serialize as their values."""
    return asdict(report)


def save_run_log(run_id: str, record: dict) -> str:
    """Save the run record to the run logs directory."""
    runs_dir = Path(config.RUN_LOGS_DIR)
    runs_dir.mkdir(parents=True, exist_ok=True)
    file_path = runs_dir / f"{run_id}.json"
    with open(file_path, "w") as f:
        json.dump(record, f, indent=2, default=str)
    log.info("Run log saved: %s", file_path)
    return str(file_path)
