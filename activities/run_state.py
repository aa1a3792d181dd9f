"""
Activity: Run State — run-store writes issued from the Temporal workflow.

Workflow code cannot touch the database; each store call becomes an
activity bound to the worker's store instance.
"""

from __future__ import annotations

import logging

from temporalio import activity

from features.runs.store import RunStateStore
from models.schemas import ChangeScope, Run, RunCounts, RunGuideOutcome, RunStatus

log = logging.getLogger(__name__)


class RunStateActivities:

    def __init__(self, store: RunStateStore):
        self.store = store

    @activity.defn(name="create_run")
    async def create_run(self, scope: str, model: str) -> Run:
        return await self.store.create_run(ChangeScope.parse(scope), model)

    @activity.defn(name="append_guide_outcome")
    async def append_guide_outcome(self, outcome: RunGuideOutcome) -> None:
        await self.store.append_guide_outcome(outcome)

    @activity.defn(name="save_layer_summary")
    async def save_layer_summary(self, run_id: str, layer_index: int, summary: dict[str, str]) -> None:
        await self.store.save_layer_summary(run_id, layer_index, summary)

    @activity.defn(name="finalize_run")
    async def finalize_run(
        self,
        run_id: str,
        status: str,
        counts: RunCounts,
        finished_at: str,
        error: str | None,
    ) -> None:
        await self.store.finalize_run(run_id, RunStatus(status), counts, finished_at, error)
        log.info("Run %s finalized as %s", run_id, status)
