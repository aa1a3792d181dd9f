"""
Temporal Workflow: Layered Guide Update

Runs the layered orchestrator durably. Every side effect (git, guide files,
OpenAI, run-state writes) is an activity; the scheduling itself (forest,
layers, child summaries, fan-out/fan-in, barriers) runs as workflow code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    import config
    from activities.build_context import load_layer_contexts
    from activities.detect_changes import detect_changes
    from activities.run_state import RunStateActivities
    from activities.update_guides import guide_diff, update_guide
    from features.runs.events import RunEventSink
    from models.schemas import (
        ChangeScope,
        ChangeSet,
        GuideContext,
        LayerSummary,
        Run,
        RunCounts,
        RunGuideOutcome,
        RunReport,
        RunStatus,
        UpdateResult,
    )
    from workflows.orchestrator import LayeredOrchestrator

GIT_TIMEOUT = timedelta(minutes=2)
STORE_TIMEOUT = timedelta(seconds=30)
DEFAULT_RETRY = RetryPolicy(maximum_attempts=3)
# The orchestrator never retries a guide update
NO_RETRY = RetryPolicy(maximum_attempts=1)


@dataclass
class GuideUpdateRequest:
    repo_path: str
    scope: str = "staged"
    model: str = ""
    policy: str = ""
    guide_filenames: list[str] = field(default_factory=list)


class ActivityGuideIO:
    """GuideSyncIO whose calls are Temporal activities."""

    def __init__(self, request: GuideUpdateRequest):
        self.repo_path = request.repo_path
        self.model = request.model or None
        self.guide_filenames = request.guide_filenames or None

    async def detect_changes(self, scope: ChangeScope) -> ChangeSet:
        return await workflow.execute_activity(
            detect_changes, args=[self.repo_path, scope.value, self.guide_filenames],
            start_to_close_timeout=GIT_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )

    async def load_contexts(self, change_set: ChangeSet) -> list[GuideContext]:
        return await workflow.execute_activity(
            load_layer_contexts, args=[self.repo_path, change_set],
            start_to_close_timeout=GIT_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )

    async def update_guide(self, guide_path: str, prompt: str) -> UpdateResult:
        return await workflow.execute_activity(
            update_guide, args=[self.repo_path, guide_path, prompt, self.model],
            start_to_close_timeout=timedelta(minutes=config.GUIDE_UPDATE_TIMEOUT_MIN),
            retry_policy=NO_RETRY,
        )

    async def guide_diff(self, guide_path: str) -> str:
        return await workflow.execute_activity(
            guide_diff, args=[self.repo_path, guide_path],
            start_to_close_timeout=GIT_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )


class ActivityRunStateStore:
    """RunStateStore whose writes are Temporal activities."""

    async def create_run(self, scope: ChangeScope, model: str = "") -> Run:
        return await workflow.execute_activity_method(
            RunStateActivities.create_run, args=[scope.value, model],
            start_to_close_timeout=STORE_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )

    async def append_guide_outcome(self, outcome: RunGuideOutcome) -> None:
        await workflow.execute_activity_method(
            RunStateActivities.append_guide_outcome, outcome,
            start_to_close_timeout=STORE_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )

    async def save_layer_summary(self, run_id: str, layer_index: int, summary: LayerSummary) -> None:
        await workflow.execute_activity_method(
            RunStateActivities.save_layer_summary, args=[run_id, layer_index, dict(summary)],
            start_to_close_timeout=STORE_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )

    async def finalize_run(self, run_id, status, counts: RunCounts, finished_at, error=None) -> None:
        await workflow.execute_activity_method(
            RunStateActivities.finalize_run,
            args=[run_id, RunStatus(status).value, counts, finished_at, error],
            start_to_close_timeout=STORE_TIMEOUT, retry_policy=DEFAULT_RETRY,
        )


@workflow.defn
class LayeredGuideUpdate:
    """Temporal workflow running one layered guide update."""

    def __init__(self):
        self._events = RunEventSink(clock=workflow.now)

    @workflow.run
    async def run(self, request: GuideUpdateRequest) -> RunReport:
        workflow.logger.info("Layered guide update for %s (scope: %s)", request.repo_path, request.scope)
        orchestrator = LayeredOrchestrator(
            ActivityGuideIO(request),
            ActivityRunStateStore(),
            guide_filenames=request.guide_filenames or None,
            policy=request.policy or None,
            model=request.model,
            events=self._events,
            clock=workflow.now,
            logger=workflow.logger,
        )
        return await orchestrator.run(request.scope)

    @workflow.query
    def events(self) -> list[dict]:
        return list(self._events.history)
