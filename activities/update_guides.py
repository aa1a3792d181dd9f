"""
Activity: Update Guides — asks the LLM to revise one guide and writes the
result in place, plus the guide diff used as parent-layer context.

Safe to invoke once per guide per layer: the file is only written when the
revised text differs from what is on disk.
"""

from __future__ import annotations

import logging

from temporalio import activity

from activities.git_ops import guide_diff as _guide_diff
from models.schemas import UpdateResult
from utils.llm import chat, is_no_changes, strip_fences
from utils.repo_scanner import GuideReader

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a documentation maintenance agent. You keep short engineering "
    "guides accurate after code changes.\n\n"
    "Reply with EXACTLY ONE of:\n"
    "- the string NO-CHANGES, if the guide is still accurate\n"
    "- the COMPLETE updated guide as markdown (not a diff, no commentary)\n\n"
    "Keep edits minimal and targeted. Preserve structure, headings and links."
)


@activity.defn
def update_guide(repo_path: str, guide_path: str, prompt: str, model: str | None = None) -> UpdateResult:
    """
    Revise `guide_path` using `prompt`.

    Never raises: failures come back as UpdateResult(success=False, error=...).
    """
    reader = GuideReader(repo_path)
    try:
        original = reader.read(guide_path)
    except OSError as e:
        log.error("Cannot read %s: %s", guide_path, e)
        return UpdateResult(success=False, error=f"Cannot read guide: {e}")

    try:
        reply = chat(
            system=SYSTEM_PROMPT,
            user=f"{prompt}\n\n## YOUR TASK\n\nReturn the updated content of {guide_path}, or NO-CHANGES.",
            model=model,
        )
    except Exception as e:
        log.error("LLM update failed for %s: %s", guide_path, e)
        return UpdateResult(success=False, error=str(e))

    if not reply.strip():
        return UpdateResult(success=False, error="Empty response from model")

    if is_no_changes(reply):
        log.info("No changes needed for %s", guide_path)
        return UpdateResult(success=True, changed=False)

    updated = strip_fences(reply)
    if not updated.endswith("\n"):
        updated += "\n"
    if updated == original:
        log.info("Model returned %s unchanged", guide_path)
        return UpdateResult(success=True, changed=False)

    try:
        reader.write(guide_path, updated)
    except OSError as e:
        log.error("Cannot write %s: %s", guide_path, e)
        return UpdateResult(success=False, error=f"Cannot write guide: {e}")

    log.info("Updated: %s (%d -> %d chars)", guide_path, len(original), len(updated))
    return UpdateResult(success=True, changed=True)


@activity.defn
def guide_diff(repo_path: str, guide_path: str) -> str:
    """Working-tree diff of a guide after its update."""
    return _guide_diff(repo_path, guide_path)
