"""
Tests for the run-store activities used by the Temporal workflow. The
activity methods are called directly; they delegate to the worker's store.
"""

import pytest

from activities.run_state import RunStateActivities
from features.runs.store import InMemoryRunStateStore
from models.schemas import OutcomeStatus, RunCounts, RunGuideOutcome, RunStatus


class TestRunStateActivities:

    @pytest.mark.asyncio
    async def test_round_trip_through_store(self):
        store = InMemoryRunStateStore()
        activities = RunStateActivities(store)

        run = await activities.create_run("last_commit", "gpt-4.1")
        await activities.append_guide_outcome(RunGuideOutcome(run.id, "a/agents.md", 0, OutcomeStatus.UPDATED))
        await activities.save_layer_summary(run.id, 0, {"a/agents.md": "+x"})
        await activities.finalize_run(run.id, "success", RunCounts(total_layers=1, guides_updated=1), "now", None)

        stored = await store.get_run(run.id)
        assert stored.scope.value == "head"
        assert stored.status == RunStatus.SUCCESS
        assert stored.guides_updated == 1
        assert await store.get_layer_summaries(run.id) == {0: {"a/agents.md": "+x"}}
