"""
Activity: Detect Changes — changed files of a scope and the guides they affect.
"""

from __future__ import annotations

import logging

from temporalio import activity

import config
from activities.git_ops import changed_files
from features.guides.change_mapper import map_changes
from models.schemas import ChangeScope, ChangeSet
from utils.repo_scanner import GuideReader

log = logging.getLogger(__name__)


@activity.defn
def detect_changes(repo_path: str, scope: str, filenames: list[str] | None = None) -> ChangeSet:
    """
    Query git for the scope's changed files and map them to affected guides.

    Raises VCSError when git cannot list the changes; the run cannot
    proceed without them.
    """
    filenames = filenames or config.ALL_GUIDE_FILENAMES
    change_scope = ChangeScope.parse(scope)
    files = changed_files(repo_path, change_scope)
    affected = map_changes(files, filenames, GuideReader(repo_path))
    log.info("%d changed file(s) affect %d guide(s)", len(files), len(affected))
    return ChangeSet(
        scope=change_scope,
        changed_files=tuple(files),
        affected_guides=tuple(sorted(affected)),
    )
