"""
Guide Pilot CLI.

Usage:
    python cli.py update [staged|head|pr] [--model M] [--repo PATH] [--temporal] [--adr]
                         [--policy no_success|any_failure]
    python cli.py tree [--repo PATH] [--json]
    python cli.py runs [--limit N] [--status S] [--json]

`update` exits 0 when the run succeeds, 1 when it finalizes as failed and
2 when it aborts on a fatal error (git unavailable, run store failure).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from dataclasses import asdict

from temporalio.client import Client, WorkflowFailureError

import config
from features.guides.registry import guide_tree, render_tree, sync_registry
from features.runs.store import open_store
from models.errors import GuideSyncError
from models.schemas import ChangeScope, FinalizePolicy, RunReport, RunStatus
from utils.repo_scanner import GuideReader
from workflows.inprocess import run_inprocess
from workflows.pipeline import GuideUpdateRequest, LayeredGuideUpdate

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_FATAL = 2


# ── update ────────────────────────────────────────────────────────────

async def _update_inprocess(args) -> RunReport:
    store, db = open_store(config.DATABASE_URL)
    try:
        return await run_inprocess(
            args.repo, args.scope, store,
            model=args.model, policy=args.policy, write_adr=args.adr,
        )
    finally:
        if db is not None:
            db.close()


async def _update_temporal(args) -> RunReport:
    client = await Client.connect(config.TEMPORAL_HOST, namespace=config.TEMPORAL_NAMESPACE)
    workflow_id = f"guide-update-{uuid.uuid4().hex[:8]}"
    log.info("Starting workflow %s on %s", workflow_id, config.TEMPORAL_TASK_QUEUE)
    return await client.execute_workflow(
        LayeredGuideUpdate.run,
        GuideUpdateRequest(
            repo_path=args.repo,
            scope=ChangeScope.parse(args.scope).value,
            model=args.model or config.OPENAI_MODEL,
            policy=args.policy or config.RUN_FAILURE_POLICY,
            guide_filenames=config.ALL_GUIDE_FILENAMES,
        ),
        id=workflow_id,
        task_queue=config.TEMPORAL_TASK_QUEUE,
    )


def cmd_update(args) -> int:
    runner = _update_temporal if args.temporal else _update_inprocess
    try:
        report = asyncio.run(runner(args))
    except (GuideSyncError, WorkflowFailureError) as e:
        print(f"Run aborted: {e}", file=sys.stderr)
        return EXIT_FATAL
    except Exception as e:
        log.exception("Run aborted on unexpected error")
        print(f"Run aborted: {e}", file=sys.stderr)
        return EXIT_FATAL

    run = report.run
    for layer in report.layers:
        note = " (no diff)" if layer.skipped else ""
        print(f"Layer {layer.index}: {layer.updated} updated, {layer.unchanged} unchanged, "
              f"{layer.failed} failed{note}")
        for guide in layer.guides:
            print(f"  {guide}")
    print(f"Run {run.id}: {run.status.value} "
          f"({run.guides_updated} updated, {run.guides_unchanged} unchanged, "
          f"{run.guides_failed} failed, {run.total_layers} layer(s))")
    if report.decision:
        print(f"ADR: {report.decision['adr_path']}")
        print()
        print(report.decision["commit_message"])
    return EXIT_OK if run.status == RunStatus.SUCCESS else EXIT_RUN_FAILED


# ── tree ──────────────────────────────────────────────────────────────

def cmd_tree(args) -> int:
    _, db = open_store(config.DATABASE_URL)
    try:
        guides = sync_registry(GuideReader(args.repo), config.ALL_GUIDE_FILENAMES, db)
    except ValueError as e:
        print(e, file=sys.stderr)
        return EXIT_FATAL
    finally:
        if db is not None:
            db.close()

    tree = guide_tree(guides)
    if args.json:
        print(json.dumps(tree, indent=2))
        return EXIT_OK
    if not guides:
        print("No guides found")
        return EXIT_OK
    print(render_tree(guides))
    coverage = tree["coverage"]
    print(f"\n{coverage['total']} guide(s): {coverage['active']} active, {coverage['draft']} draft")
    return EXIT_OK


# ── runs ──────────────────────────────────────────────────────────────

def _runs_from_logs(limit: int, status: str | None) -> list[dict]:
    runs = []
    if not config.RUN_LOGS_DIR.is_dir():
        return runs
    for log_file in sorted(config.RUN_LOGS_DIR.glob("*.json"), reverse=True):
        try:
            with open(log_file) as f:
                run = json.load(f)["run"]
        except (OSError, ValueError, KeyError) as e:
            log.warning("Skipping unreadable run log %s: %s", log_file, e)
            continue
        if status and run.get("status") != status:
            continue
        runs.append(run)
        if len(runs) >= limit:
            break
    return runs


def cmd_runs(args) -> int:
    store, db = open_store(config.DATABASE_URL)
    try:
        if db is not None:
            rows = asyncio.run(store.list_runs(limit=args.limit, status=args.status))
            runs = [{**asdict(r), "scope": r.scope.value, "status": r.status.value} for r in rows]
        else:
            runs = _runs_from_logs(args.limit, args.status)
    finally:
        if db is not None:
            db.close()

    if args.json:
        print(json.dumps(runs, indent=2, default=str))
        return EXIT_OK
    if not runs:
        print("No runs recorded")
        return EXIT_OK
    for run in runs:
        print(f"{run['id']}  {run['status']:<8} scope={run['scope']}  "
              f"updated={run['guides_updated']} unchanged={run['guides_unchanged']} "
              f"failed={run['guides_failed']}  {run['started_at']}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Layered engineering-guide updates")
    subparsers = parser.add_subparsers(dest="command")

    update_parser = subparsers.add_parser("update", help="Update guides affected by code changes")
    update_parser.add_argument("scope", nargs="?", default=ChangeScope.STAGED.value,
                               choices=[s.value for s in ChangeScope], help="Which changes to read")
    update_parser.add_argument("--model", default=None, help=f"LLM model (default: {config.OPENAI_MODEL})")
    update_parser.add_argument("--repo", default=str(config.TARGET_REPO_PATH), help="Repository path")
    update_parser.add_argument("--temporal", action="store_true", help="Run through the Temporal worker")
    update_parser.add_argument("--adr", action="store_true", help="Write a decision record after the run")
    update_parser.add_argument("--policy", default=None, choices=[p.value for p in FinalizePolicy],
                               help=f"Run failure policy (default: {config.RUN_FAILURE_POLICY})")

    tree_parser = subparsers.add_parser("tree", help="Show the guide forest and coverage")
    tree_parser.add_argument("--repo", default=str(config.TARGET_REPO_PATH), help="Repository path")
    tree_parser.add_argument("--json", action="store_true", help="JSON output")

    runs_parser = subparsers.add_parser("runs", help="List recent runs")
    runs_parser.add_argument("--limit", type=int, default=20, help="Max runs to show")
    runs_parser.add_argument("--status", default=None, choices=[s.value for s in RunStatus])
    runs_parser.add_argument("--json", action="store_true", help="JSON output")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return EXIT_RUN_FAILED

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "update":
        return cmd_update(args)
    if args.command == "tree":
        return cmd_tree(args)
    return cmd_runs(args)


if __name__ == "__main__":
    sys.exit(main())
