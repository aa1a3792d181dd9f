"""
Run-state stores — durable record of runs, guide outcomes and layer summaries.

The orchestrator only writes (create, append, save summary, finalize) and
never reads back mid-run. The read side backs the API and CLI.

Two implementations:
  InMemoryRunStateStore  — tests, and fallback when Postgres is unavailable
  PostgresRunStateStore  — psycopg2 via features.runs.db, blocking calls
                           pushed to the default executor
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import Any, Protocol

from features.runs.db import RunDatabase
from models.errors import RunStateError
from models.schemas import (
    ChangeScope,
    LayerSummary,
    OutcomeStatus,
    Run,
    RunCounts,
    RunGuideOutcome,
    RunStatus,
)

log = logging.getLogger(__name__)


def new_run_id(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"run-{now.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"


class RunStateStore(Protocol):

    async def create_run(self, scope: ChangeScope, model: str = "") -> Run: ...

    async def append_guide_outcome(self, outcome: RunGuideOutcome) -> None: ...

    async def save_layer_summary(self, run_id: str, layer_index: int, summary: LayerSummary) -> None: ...

    async def finalize_run(
        self,
        run_id: str,
        status: RunStatus,
        counts: RunCounts,
        finished_at: str,
        error: str | None = None,
    ) -> None: ...


class InMemoryRunStateStore:
    """Dict-backed store. State lives as long as the instance."""

    def __init__(self):
        self.runs: dict[str, Run] = {}
        self.outcomes: dict[str, list[RunGuideOutcome]] = {}
        self.layer_summaries: dict[str, dict[int, LayerSummary]] = {}

    async def create_run(self, scope: ChangeScope, model: str = "") -> Run:
        now = datetime.now(timezone.utc)
        run = Run(id=new_run_id(now), scope=ChangeScope.parse(scope), model=model,
                  started_at=now.isoformat())
        self.runs[run.id] = run
        self.outcomes[run.id] = []
        self.layer_summaries[run.id] = {}
        return replace(run)

    async def append_guide_outcome(self, outcome: RunGuideOutcome) -> None:
        if outcome.run_id not in self.runs:
            raise RunStateError(f"Unknown run: {outcome.run_id}")
        self.outcomes[outcome.run_id].append(outcome)

    async def save_layer_summary(self, run_id: str, layer_index: int, summary: LayerSummary) -> None:
        if run_id not in self.runs:
            raise RunStateError(f"Unknown run: {run_id}")
        self.layer_summaries[run_id][layer_index] = dict(summary)

    async def finalize_run(self, run_id, status, counts, finished_at, error=None) -> None:
        if run_id not in self.runs:
            raise RunStateError(f"Unknown run: {run_id}")
        self.runs[run_id] = replace(
            self.runs[run_id], status=RunStatus(status), finished_at=finished_at,
            error=error, **asdict(counts),
        )

    # Read side

    async def get_run(self, run_id: str) -> Run | None:
        run = self.runs.get(run_id)
        return replace(run) if run else None

    async def list_runs(self, limit: int = 50, status: str | None = None) -> list[Run]:
        runs = [r for r in self.runs.values() if not status or r.status.value == status]
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return runs[:limit]

    async def get_guide_outcomes(self, run_id: str) -> list[RunGuideOutcome]:
        return sorted(self.outcomes.get(run_id, []), key=lambda o: (o.layer_index, o.guide_path))

    async def get_layer_summaries(self, run_id: str) -> dict[int, LayerSummary]:
        return dict(self.layer_summaries.get(run_id, {}))


class PostgresRunStateStore:
    """Store backed by a RunDatabase handle owned by the caller."""

    def __init__(self, db: RunDatabase):
        self.db = db

    async def _call(self, fn, *args) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except RunStateError:
            raise
        except Exception as e:
            name = getattr(fn, "__name__", "database call")
            raise RunStateError(f"{name} failed: {e}") from e

    async def create_run(self, scope: ChangeScope, model: str = "") -> Run:
        now = datetime.now(timezone.utc)
        run = Run(id=new_run_id(now), scope=ChangeScope.parse(scope), model=model,
                  started_at=now.isoformat())
        await self._call(self.db.insert_run, {
            "id": run.id,
            "scope": run.scope.value,
            "status": run.status.value,
            "model": run.model,
            "started_at": run.started_at,
        })
        return run

    async def append_guide_outcome(self, outcome: RunGuideOutcome) -> None:
        row = asdict(outcome)
        row["status"] = outcome.status.value
        await self._call(self.db.insert_run_guide, row)

    async def save_layer_summary(self, run_id: str, layer_index: int, summary: LayerSummary) -> None:
        await self._call(self.db.upsert_layer_summary, run_id, layer_index, dict(summary))

    async def finalize_run(self, run_id, status, counts, finished_at, error=None) -> None:
        await self._call(self.db.finalize_run, run_id, {
            "status": RunStatus(status).value,
            "finished_at": finished_at,
            "error": error,
            **asdict(counts),
        })

    # Read side

    async def get_run(self, run_id: str) -> Run | None:
        row = await self._call(self.db.get_run, run_id)
        return run_from_row(row) if row else None

    async def list_runs(self, limit: int = 50, status: str | None = None) -> list[Run]:
        rows = await self._call(self.db.list_runs, limit, status)
        return [run_from_row(r) for r in rows]

    async def get_guide_outcomes(self, run_id: str) -> list[RunGuideOutcome]:
        rows = await self._call(self.db.get_run_guides, run_id)
        return [
            RunGuideOutcome(
                run_id=r["run_id"],
                guide_path=r["guide_path"],
                layer_index=r["layer_index"],
                status=OutcomeStatus(r["status"]),
                error=r.get("error"),
                diff_summary=r.get("diff_summary"),
            )
            for r in rows
        ]

    async def get_layer_summaries(self, run_id: str) -> dict[int, LayerSummary]:
        return await self._call(self.db.get_layer_summaries, run_id)


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def run_from_row(row: dict) -> Run:
    return Run(
        id=row["id"],
        scope=ChangeScope.parse(row["scope"]),
        status=RunStatus(row["status"]),
        model=row.get("model") or "",
        started_at=_iso(row.get("started_at")) or "",
        finished_at=_iso(row.get("finished_at")),
        total_layers=row.get("total_layers") or 0,
        guides_updated=row.get("guides_updated") or 0,
        guides_unchanged=row.get("guides_unchanged") or 0,
        guides_failed=row.get("guides_failed") or 0,
        error=row.get("error"),
    )


def open_store(database_url: str) -> tuple[RunStateStore, RunDatabase | None]:
    """Postgres store when reachable, in-memory otherwise.

    Returns the store and the database handle the caller must close.
    """
    if not database_url:
        log.info("DATABASE_URL not set; run state is in-memory only")
        return InMemoryRunStateStore(), None
    db = RunDatabase(database_url)
    try:
        db.init_db()
    except Exception as e:
        log.warning("Could not connect to Postgres: %s (run state will be in-memory only)", e)
        db.close()
        return InMemoryRunStateStore(), None
    return PostgresRunStateStore(db), db
