"""
Activity: Build Context — directory-scoped diff and current text for each
guide of one layer.
"""

from __future__ import annotations

import logging

from temporalio import activity

from activities.git_ops import diff_for_dir, git_meta
from features.guides.context import guide_dir
from models.schemas import ChangeSet, GuideContext
from utils.repo_scanner import GuideReader

log = logging.getLogger(__name__)


@activity.defn
def load_layer_contexts(repo_path: str, change_set: ChangeSet) -> list[GuideContext]:
    """
    One context per guide in `change_set.affected_guides` that has changes
    under its directory. Guides with an empty scoped diff or a missing file
    are left out.

    Raises VCSError if a directory diff cannot be computed.
    """
    reader = GuideReader(repo_path)
    meta = git_meta(repo_path)
    contexts = []

    for guide in change_set.affected_guides:
        if not reader.exists(guide):
            log.warning("%s does not exist, skipping", guide)
            continue

        directory = guide_dir(guide)
        diff = diff_for_dir(repo_path, change_set.scope, directory)
        if not diff.strip():
            log.debug("No changes under %s", directory or ".")
            continue

        contexts.append(GuideContext(
            guide_path=guide,
            dir_path=directory,
            scope=change_set.scope,
            diff=diff,
            current_guide=reader.read(guide),
            changed_files=list(change_set.changed_files),
            git=meta,
        ))

    log.info("Built %d context(s) for %d guide(s)", len(contexts), len(change_set.affected_guides))
    return contexts
