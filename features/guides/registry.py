"""
Guide registry — whole-repository view of guides.

Unlike a run's forest, which only links guides affected by the current
changes, the registry links every guide in the repository. It backs the
`tree` CLI command and the /guides/tree endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from features.guides.tree import build_forest
from features.runs.db import RunDatabase
from models.schemas import Guide, GuideStatus
from utils.repo_scanner import GuideReader

log = logging.getLogger(__name__)


def discover_guides(
    reader: GuideReader,
    filenames: list[str],
    known: dict[str, Guide] | None = None,
) -> list[Guide]:
    """Every guide in the repository with its parent and content hash.

    `known` carries previously stored records so a guide's status survives
    rediscovery (drafts stay drafts).
    """
    known = known or {}
    paths = reader.iter_guides(filenames)
    forest = build_forest(paths, filenames)

    guides = []
    for path in paths:
        previous = known.get(path)
        guides.append(Guide(
            path=path,
            parent_path=forest.parents[path],
            status=previous.status if previous else GuideStatus.ACTIVE,
            last_known_hash=reader.content_hash(path),
        ))
    return guides


def guide_tree(guides: list[Guide]) -> dict:
    """Tree nodes with children plus coverage counts."""
    children: dict[str, list[str]] = {g.path: [] for g in guides}
    for g in guides:
        if g.parent_path in children:
            children[g.parent_path].append(g.path)

    nodes = []
    for g in guides:
        node = asdict(g)
        node["status"] = g.status.value
        node["children"] = sorted(children[g.path])
        nodes.append(node)

    return {
        "nodes": nodes,
        "coverage": {
            "total": len(guides),
            "active": sum(1 for g in guides if g.status == GuideStatus.ACTIVE),
            "draft": sum(1 for g in guides if g.status == GuideStatus.DRAFT),
        },
    }


def render_tree(guides: list[Guide]) -> str:
    """Indented text rendering of the guide forest."""
    by_parent: dict[str | None, list[Guide]] = {}
    for g in guides:
        by_parent.setdefault(g.parent_path, []).append(g)

    lines: list[str] = []

    def walk(parent: str | None, depth: int) -> None:
        for g in sorted(by_parent.get(parent, []), key=lambda x: x.path):
            marker = " (draft)" if g.status == GuideStatus.DRAFT else ""
            lines.append(f"{'  ' * depth}├── {g.path}{marker}")
            walk(g.path, depth + 1)

    walk(None, 0)
    return "\n".join(lines)


def sync_registry(reader: GuideReader, filenames: list[str], db: RunDatabase | None = None) -> list[Guide]:
    """Discover guides and, with a database, persist them to the guides table."""
    known = {}
    if db is not None:
        for row in db.list_guides():
            known[row["path"]] = Guide(
                path=row["path"],
                parent_path=row.get("parent_path"),
                status=GuideStatus(row.get("status") or GuideStatus.ACTIVE.value),
                last_known_hash=row.get("last_hash"),
            )

    guides = discover_guides(reader, filenames, known)
    if db is not None:
        for g in guides:
            row = asdict(g)
            row["status"] = g.status.value
            db.upsert_guide(row)
        log.info("Guide registry synced: %d guide(s)", len(guides))
    return guides
