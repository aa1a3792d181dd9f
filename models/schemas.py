"""
Data models for guide sync runs.

Everything that crosses a stage boundary (change detection, tree building,
layer scheduling, orchestration, run-state persistence) is one of these
dataclasses. Timestamps are ISO-8601 strings so records serialize the same
way in JSON logs, Postgres rows and Temporal payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class ChangeScope(str, Enum):
    STAGED = "staged"
    HEAD = "head"  # last commit
    PR = "pr"  # against upstream

    @classmethod
    def parse(cls, value: str | ChangeScope) -> ChangeScope:
        """Accept enum values plus the long-form aliases used by older scripts."""
        if isinstance(value, ChangeScope):
            return value
        aliases = {
            "lastcommit": cls.HEAD,
            "last_commit": cls.HEAD,
            "againstupstream": cls.PR,
            "against_upstream": cls.PR,
            "against_origin_main": cls.PR,
        }
        key = value.strip().lower()
        if key in aliases:
            return aliases[key]
        return cls(key)


class GuideStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class FinalizePolicy(str, Enum):
    NO_SUCCESS = "no_success"  # failed only if something failed and nothing succeeded
    ANY_FAILURE = "any_failure"  # failed if any guide failed


@dataclass(frozen=True)
class ChangeSet:
    """Changed files for one scope and the guides that cover them."""
    scope: ChangeScope
    changed_files: tuple[str, ...] = ()
    affected_guides: tuple[str, ...] = ()

    def scoped(self, guides: list[str] | tuple[str, ...]) -> ChangeSet:
        """Same change data, affected set limited to `guides`."""
        return replace(self, affected_guides=tuple(sorted(set(guides))))


@dataclass
class Guide:
    """A guide file discovered in the repository."""
    path: str
    parent_path: str | None = None
    status: GuideStatus = GuideStatus.ACTIVE
    last_known_hash: str | None = None


@dataclass
class GuideForest:
    """Nearest-ancestor parent links among a set of guides."""
    parents: dict[str, str | None] = field(default_factory=dict)
    children: dict[str, set[str]] = field(default_factory=dict)

    def roots(self) -> list[str]:
        return sorted(g for g, p in self.parents.items() if p is None)


@dataclass(frozen=True)
class GitMeta:
    branch: str = "unknown"
    sha: str = "unknown"
    remote: str = ""


@dataclass
class GuideContext:
    """Everything the updater needs to revise one guide."""
    guide_path: str
    dir_path: str
    scope: ChangeScope
    diff: str
    current_guide: str
    changed_files: list[str] = field(default_factory=list)
    git: GitMeta = field(default_factory=GitMeta)
    child_updates: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdateResult:
    """Result of one update-and-edit dispatch."""
    success: bool
    changed: bool = False
    error: str | None = None


@dataclass
class RunCounts:
    total_layers: int = 0
    guides_updated: int = 0
    guides_unchanged: int = 0
    guides_failed: int = 0


@dataclass
class Run:
    """A single layered update run."""
    id: str
    scope: ChangeScope
    status: RunStatus = RunStatus.RUNNING
    model: str = ""
    started_at: str = ""
    finished_at: str | None = None
    total_layers: int = 0
    guides_updated: int = 0
    guides_unchanged: int = 0
    guides_failed: int = 0
    error: str | None = None


@dataclass(frozen=True)
class RunGuideOutcome:
    """One guide's result within a run. Written once, never mutated."""
    run_id: str
    guide_path: str
    layer_index: int
    status: OutcomeStatus
    error: str | None = None
    diff_summary: str | None = None


@dataclass
class LayerReport:
    """Per-layer counts, reported back to callers."""
    index: int
    guides: list[str] = field(default_factory=list)
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    skipped: bool = False  # no directory-scoped diff for the whole layer
    diff_failed: bool = False  # diffs could not be computed; treated as empty


@dataclass
class RunReport:
    """Finalized run plus the per-layer breakdown."""
    run: Run
    layers: list[LayerReport] = field(default_factory=list)
    change_set: ChangeSet | None = None
    decision: dict | None = None  # ADR path and commit message, when written
    log_file: str = ""


# Guide path -> diff text produced by updating that guide
LayerSummary = dict[str, str]
