"""
FastAPI application — REST API for Guide Pilot.

Endpoints:
  POST /runs/start         — Start a layered guide update run
  GET  /runs               — List runs
  GET  /runs/{run_id}      — Run record, guide outcomes, layer summaries, events
  GET  /runs/{run_id}/guides — Guide outcomes of a run
  GET  /guides/tree        — Guide forest of the target repository with coverage
  GET  /status             — Guide coverage and the latest run
  GET  /health             — Health check

Usage:
    python app.py            (or: uvicorn app:app)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from temporalio.client import Client

import config
from features.guides.registry import guide_tree, sync_registry
from features.runs.db import RunDatabase
from features.runs.events import RunEventSink
from features.runs.store import InMemoryRunStateStore, open_store
from models.errors import GuideSyncError
from models.schemas import ChangeScope, FinalizePolicy
from utils.repo_scanner import GuideReader
from workflows.inprocess import run_inprocess
from workflows.pipeline import GuideUpdateRequest, LayeredGuideUpdate

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)

temporal_client: Client | None = None
store = InMemoryRunStateStore()
db: RunDatabase | None = None
# Event sinks of in-process runs, by run id
run_events: dict[str, RunEventSink] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    global temporal_client, store, db
    store, db = open_store(config.DATABASE_URL)
    if config.USE_TEMPORAL:
        try:
            temporal_client = await Client.connect(config.TEMPORAL_HOST, namespace=config.TEMPORAL_NAMESPACE)
            log.info("Connected to Temporal at %s", config.TEMPORAL_HOST)
        except Exception as e:
            log.warning("Could not connect to Temporal: %s (runs will execute in-process)", e)
            temporal_client = None
    yield
    if db is not None:
        db.close()


app = FastAPI(
    title="Guide Pilot",
    description="Layered engineering-guide updates with Temporal orchestration and run tracking",
    version="1.0.0",
    lifespan=lifespan,
)


class RunStartRequest(BaseModel):
    repo_path: str = str(config.TARGET_REPO_PATH)
    scope: str = ChangeScope.STAGED.value
    model: str | None = None
    policy: str | None = None
    write_adr: bool = False


class RunStartResponse(BaseModel):
    run_id: str
    status: str
    message: str


# ── Health ────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "guide-pilot",
        "temporal_connected": temporal_client is not None,
        "database_connected": db is not None,
    }


# ── Runs ──────────────────────────────────────────────────────────────

@app.post("/runs/start", response_model=RunStartResponse)
async def start_run(req: RunStartRequest):
    """Start a layered guide update on the target repository."""
    if not Path(req.repo_path).is_dir():
        raise HTTPException(status_code=400, detail=f"Repository not found: {req.repo_path}")
    try:
        scope = ChangeScope.parse(req.scope)
        policy = FinalizePolicy(req.policy or config.RUN_FAILURE_POLICY)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if temporal_client:
        workflow_id = f"guide-update-{uuid.uuid4().hex[:8]}"
        await temporal_client.start_workflow(
            LayeredGuideUpdate.run,
            GuideUpdateRequest(
                repo_path=req.repo_path,
                scope=scope.value,
                model=req.model or config.OPENAI_MODEL,
                policy=policy.value,
                guide_filenames=config.ALL_GUIDE_FILENAMES,
            ),
            id=workflow_id,
            task_queue=config.TEMPORAL_TASK_QUEUE,
        )
        return RunStartResponse(
            run_id=workflow_id,
            status="started",
            message=f"Run started via Temporal. Workflow ID: {workflow_id}",
        )

    events = RunEventSink()
    events.subscribe(lambda e: _track_events(e, events))
    try:
        report = await run_inprocess(
            req.repo_path, scope, store,
            model=req.model, policy=policy, events=events, write_adr=req.write_adr,
        )
    except GuideSyncError as e:
        log.error("Run failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return RunStartResponse(
        run_id=report.run.id,
        status=report.run.status.value,
        message=f"Run completed in-process (no Temporal): {report.run.guides_updated} updated, "
                f"{report.run.guides_unchanged} unchanged, {report.run.guides_failed} failed",
    )


def _track_events(event: dict, sink: RunEventSink) -> None:
    if event["type"] == "run-start":
        run_events[event["run_id"]] = sink


@app.get("/runs")
async def list_runs(status: str | None = None, limit: int = 50):
    """List recent runs, newest first."""
    runs = await store.list_runs(limit=limit, status=status)
    return {"runs": [_serialize(asdict(r)) for r in runs]}


@app.get("/runs/{run_id}")
async def get_run(run_id: str):
    """Get a run with its guide outcomes, layer summaries and events."""
    run = await store.get_run(run_id)
    if run:
        sink = run_events.get(run_id)
        return _serialize({
            **asdict(run),
            "guides": [asdict(o) for o in await store.get_guide_outcomes(run_id)],
            "layer_summaries": await store.get_layer_summaries(run_id),
            "events": sink.history if sink else [],
        })

    # Check Temporal if connected
    if temporal_client:
        try:
            handle = temporal_client.get_workflow_handle_for(LayeredGuideUpdate.run, run_id)
            desc = await handle.describe()
            events = await handle.query(LayeredGuideUpdate.events)
            result = None
            if desc.status.name == "COMPLETED":
                result = asdict(await handle.result())
            return _serialize({
                "workflow_id": run_id,
                "temporal_status": desc.status.name,
                "events": events,
                "result": result,
            })
        except Exception:
            raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")

    raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")


@app.get("/runs/{run_id}/guides")
async def get_run_guides(run_id: str, status: str | None = None):
    """Guide outcomes of a run, optionally filtered by outcome status."""
    if not await store.get_run(run_id):
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    outcomes = await store.get_guide_outcomes(run_id)
    if status:
        outcomes = [o for o in outcomes if o.status.value == status]
    return {"run_id": run_id, "guides": [_serialize(asdict(o)) for o in outcomes], "count": len(outcomes)}


# ── Guides ────────────────────────────────────────────────────────────

@app.get("/guides/tree")
def get_guide_tree(repo_path: str = str(config.TARGET_REPO_PATH)):
    """Every guide of the repository with parent links and coverage."""
    if not Path(repo_path).is_dir():
        raise HTTPException(status_code=400, detail=f"Repository not found: {repo_path}")
    guides = sync_registry(GuideReader(repo_path), config.ALL_GUIDE_FILENAMES, db)
    return guide_tree(guides)


@app.get("/status")
async def get_status(repo_path: str = str(config.TARGET_REPO_PATH)):
    """Guide coverage plus the most recent run."""
    if not Path(repo_path).is_dir():
        raise HTTPException(status_code=400, detail=f"Repository not found: {repo_path}")
    guides = sync_registry(GuideReader(repo_path), config.ALL_GUIDE_FILENAMES, db)
    latest = await store.list_runs(limit=1)
    return _serialize({
        "repo_path": repo_path,
        "coverage": guide_tree(guides)["coverage"],
        "latest_run": asdict(latest[0]) if latest else None,
        "temporal_connected": temporal_client is not None,
    })


def _serialize(obj: Any) -> Any:
    """Make a dict JSON-serializable (handle enums, datetimes, int keys)."""
    if isinstance(obj, dict):
        return {str(k): _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "value"):
        return obj.value
    return obj


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(app, host=host or config.API_HOST, port=port or config.API_PORT)


if __name__ == "__main__":
    run_server()
