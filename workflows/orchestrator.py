"""
Layered orchestrator — drives a guide update run layer by layer.

    Created → LayerExecuting* → Finalizing → Succeeded | Failed

1. Create the run record.
2. Detect changes and the affected guides.
3. Build the guide forest and its bottom-up layers.
4. For each layer, in order:
   - load directory-scoped diffs and current guide text
   - attach the summaries of all lower layers, filtered to nested guides
   - dispatch every guide of the layer concurrently and wait for all
   - record one outcome per guide as it completes
   - persist the layer summary before the next layer starts
5. Finalize counts and status.

The same orchestrator runs in-process (workflows.inprocess) and inside the
Temporal workflow (workflows.pipeline); only the IO and store adapters
differ.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Protocol

import config
from features.guides.context import child_summaries, make_prompt
from features.guides.layers import build_layers
from features.guides.tree import build_forest
from features.runs.events import RunEventSink
from features.runs.store import RunStateStore
from models.schemas import (
    ChangeScope,
    ChangeSet,
    FinalizePolicy,
    GuideContext,
    LayerReport,
    LayerSummary,
    OutcomeStatus,
    RunCounts,
    RunGuideOutcome,
    RunReport,
    RunStatus,
    UpdateResult,
)

log = logging.getLogger(__name__)


class GuideSyncIO(Protocol):
    """Side effects the orchestrator needs, bound to one repository."""

    async def detect_changes(self, scope: ChangeScope) -> ChangeSet: ...

    async def load_contexts(self, change_set: ChangeSet) -> list[GuideContext]: ...

    async def update_guide(self, guide_path: str, prompt: str) -> UpdateResult: ...

    async def guide_diff(self, guide_path: str) -> str: ...


def run_status(counts: RunCounts, policy: FinalizePolicy | str) -> RunStatus:
    """Final status of a run that reached the end of its layers."""
    policy = FinalizePolicy(policy)
    if counts.guides_failed == 0:
        return RunStatus.SUCCESS
    if policy == FinalizePolicy.ANY_FAILURE:
        return RunStatus.FAILED
    succeeded = counts.guides_updated + counts.guides_unchanged
    return RunStatus.FAILED if succeeded == 0 else RunStatus.SUCCESS


def outcome_status(result: UpdateResult) -> OutcomeStatus:
    if not result.success:
        return OutcomeStatus.FAILED
    return OutcomeStatus.UPDATED if result.changed else OutcomeStatus.UNCHANGED


class LayeredOrchestrator:

    def __init__(
        self,
        io: GuideSyncIO,
        store: RunStateStore,
        *,
        guide_filenames: list[str] | None = None,
        policy: FinalizePolicy | str | None = None,
        model: str = "",
        events: RunEventSink | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.io = io
        self.store = store
        self.guide_filenames = guide_filenames or config.ALL_GUIDE_FILENAMES
        self.policy = FinalizePolicy(policy or config.RUN_FAILURE_POLICY)
        self.model = model
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.events = events or RunEventSink(clock=self.clock)
        self.log = logger or log

    async def run(self, scope: ChangeScope | str) -> RunReport:
        """Execute one run. Re-raises run-level failures after finalizing."""
        scope = ChangeScope.parse(scope)
        run = await self.store.create_run(scope, self.model)
        report = RunReport(run=run)
        self.events.emit("run-start", run_id=run.id, scope=scope.value)
        self.log.info("Run %s starting (scope: %s)", run.id, scope.value)

        try:
            change_set = await self.io.detect_changes(scope)
            report.change_set = change_set

            forest = build_forest(change_set.affected_guides, self.guide_filenames)
            layers = build_layers(forest)
            run.total_layers = len(layers)

            if not layers:
                self.log.info("No guides affected by these changes")
            else:
                self.log.info("Found %d affected guide(s) in %d layer(s)",
                              len(change_set.affected_guides), len(layers))

            # A child may sit more than one layer below its parent
            below: LayerSummary = {}
            for index, layer in enumerate(layers):
                layer_report, summary = await self._run_layer(run.id, index, layer, change_set, below)
                below.update(summary)
                report.layers.append(layer_report)

        except asyncio.CancelledError:
            self.log.warning("Run %s cancelled after %d layer(s)", run.id, len(report.layers))
            await self._finalize_quietly(report, error="cancelled")
            raise
        except Exception as e:
            self.log.error("Run %s failed: %s", run.id, e)
            await self._finalize_quietly(report, error=str(e) or type(e).__name__)
            raise
        else:
            await self._finalize(report)
        finally:
            self.events.close()

        return report

    # ── Layers ────────────────────────────────────────────────────────

    async def _run_layer(
        self,
        run_id: str,
        index: int,
        layer: list[str],
        change_set: ChangeSet,
        below: LayerSummary,
    ) -> tuple[LayerReport, LayerSummary]:
        layer_report = LayerReport(index=index, guides=list(layer))
        self.events.emit("layer-start", run_id=run_id, layer=index, guides=list(layer))
        self.log.info("Layer %d: %d guide(s) - %s", index, len(layer), ", ".join(layer))

        try:
            contexts = await self.io.load_contexts(change_set.scoped(layer))
        except Exception as e:
            self.log.warning("Layer %d: could not compute diffs, treating as unchanged: %s", index, e)
            contexts = []
            layer_report.diff_failed = True

        outcomes: list[RunGuideOutcome] = []
        with_diff = {c.guide_path for c in contexts}
        for guide in layer:
            if guide not in with_diff:
                outcomes.append(await self._record(
                    layer_report, RunGuideOutcome(run_id, guide, index, OutcomeStatus.UNCHANGED),
                ))

        if not contexts:
            layer_report.skipped = True
            self.log.info("Layer %d: no directory-scoped diffs", index)
        else:
            for context in contexts:
                if index > 0:
                    context.child_updates = child_summaries(below, context.guide_path)
            # gather schedules every dispatch before any of them is awaited
            results = await asyncio.gather(
                *(self._dispatch(run_id, index, context, layer_report) for context in contexts),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
                outcomes.append(result)

        summary = {
            o.guide_path: o.diff_summary
            for o in outcomes
            if o.status == OutcomeStatus.UPDATED and o.diff_summary
        }
        await self.store.save_layer_summary(run_id, index, summary)

        self.events.emit(
            "layer-end", run_id=run_id, layer=index,
            updated=layer_report.updated, unchanged=layer_report.unchanged,
            failed=layer_report.failed, skipped=layer_report.skipped,
        )
        self.log.info("Layer %d complete: %d updated, %d unchanged, %d failed",
                      index, layer_report.updated, layer_report.unchanged, layer_report.failed)
        return layer_report, summary

    async def _dispatch(
        self,
        run_id: str,
        index: int,
        context: GuideContext,
        layer_report: LayerReport,
    ) -> RunGuideOutcome:
        guide = context.guide_path
        try:
            result = await self.io.update_guide(guide, make_prompt(context))
        except Exception as e:
            result = UpdateResult(success=False, error=str(e) or type(e).__name__)

        diff = None
        if result.success and result.changed:
            try:
                diff = await self.io.guide_diff(guide) or None
            except Exception as e:
                self.log.warning("Could not diff %s after update: %s", guide, e)

        status = outcome_status(result)
        if status == OutcomeStatus.FAILED:
            self.log.error("Failed to update %s: %s", guide, result.error)
        return await self._record(layer_report, RunGuideOutcome(
            run_id=run_id,
            guide_path=guide,
            layer_index=index,
            status=status,
            error=result.error if status == OutcomeStatus.FAILED else None,
            diff_summary=diff,
        ))

    async def _record(self, layer_report: LayerReport, outcome: RunGuideOutcome) -> RunGuideOutcome:
        await self.store.append_guide_outcome(outcome)
        if outcome.status == OutcomeStatus.UPDATED:
            layer_report.updated += 1
        elif outcome.status == OutcomeStatus.UNCHANGED:
            layer_report.unchanged += 1
        else:
            layer_report.failed += 1
        self.events.emit(
            "guide-result", run_id=outcome.run_id, layer=outcome.layer_index,
            path=outcome.guide_path, status=outcome.status.value, error=outcome.error,
        )
        return outcome

    # ── Finalize ──────────────────────────────────────────────────────

    def _counts(self, report: RunReport) -> RunCounts:
        return RunCounts(
            total_layers=report.run.total_layers,
            guides_updated=sum(lr.updated for lr in report.layers),
            guides_unchanged=sum(lr.unchanged for lr in report.layers),
            guides_failed=sum(lr.failed for lr in report.layers),
        )

    async def _finalize(self, report: RunReport, error: str | None = None) -> None:
        counts = self._counts(report)
        status = RunStatus.FAILED if error else run_status(counts, self.policy)
        finished_at = self.clock().isoformat()
        await self.store.finalize_run(report.run.id, status, counts, finished_at, error)

        run = report.run
        run.status = status
        run.finished_at = finished_at
        run.error = error
        run.guides_updated = counts.guides_updated
        run.guides_unchanged = counts.guides_unchanged
        run.guides_failed = counts.guides_failed

        self.events.emit(
            "run-end", run_id=run.id, status=status.value, error=error,
            updated=counts.guides_updated, unchanged=counts.guides_unchanged,
            failed=counts.guides_failed, total_layers=counts.total_layers,
        )
        self.log.info("Run %s %s: %d updated, %d unchanged, %d failed across %d layer(s)",
                      run.id, status.value, counts.guides_updated, counts.guides_unchanged,
                      counts.guides_failed, counts.total_layers)

    async def _finalize_quietly(self, report: RunReport, error: str) -> None:
        try:
            await self._finalize(report, error=error)
        except Exception as e:
            self.log.error("Could not finalize run %s: %s", report.run.id, e)
