"""
Temporal Worker — registers the guide update workflow and activities, then polls for tasks.

Usage:
    python worker.py
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from temporalio.client import Client
from temporalio.worker import Worker

import config
from activities.build_context import load_layer_contexts
from activities.detect_changes import detect_changes
from activities.run_state import RunStateActivities
from activities.update_guides import guide_diff, update_guide
from features.runs.store import open_store
from workflows.pipeline import LayeredGuideUpdate

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)

# Blocking activities (git, file IO, OpenAI) share this pool
MAX_ACTIVITY_THREADS = 16


async def main():
    store, db = open_store(config.DATABASE_URL)
    run_state = RunStateActivities(store)

    log.info("Connecting to Temporal at %s", config.TEMPORAL_HOST)
    client = await Client.connect(config.TEMPORAL_HOST, namespace=config.TEMPORAL_NAMESPACE)

    log.info("Starting worker on queue: %s", config.TEMPORAL_TASK_QUEUE)
    try:
        with ThreadPoolExecutor(max_workers=MAX_ACTIVITY_THREADS) as executor:
            worker = Worker(
                client,
                task_queue=config.TEMPORAL_TASK_QUEUE,
                workflows=[LayeredGuideUpdate],
                activities=[
                    detect_changes,
                    load_layer_contexts,
                    update_guide,
                    guide_diff,
                    run_state.create_run,
                    run_state.append_guide_outcome,
                    run_state.save_layer_summary,
                    run_state.finalize_run,
                ],
                activity_executor=executor,
            )
            log.info("Worker ready — listening for tasks")
            await worker.run()
    finally:
        if db is not None:
            db.close()


if __name__ == "__main__":
    asyncio.run(main())
