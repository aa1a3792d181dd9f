"""
Update context — child-layer summaries and the prompt handed to the updater.
"""

from __future__ import annotations

import posixpath

import config
from models.schemas import GuideContext, LayerSummary

HEADER = """You are updating short, high-signal Engineering Guides (agents.md) that help humans and AI agents work safely and effectively in this code area.

# Your job
1) Read the DIFF for this directory and the CURRENT GUIDE.
2) Decide what is now inaccurate, missing, or unclear (golden path, inputs/outputs, invariants, signals, pitfalls, links).
3) Only make edits justified by the DIFF or obvious clarifications (e.g., renaming a queue/route).

# Guide purpose (do not restate this in the document)
- Capture the intent of this area and how it fits the larger system.
- Provide the golden path (minimal steps to do the common task here).
- List success signals: logs/metrics/events/IDs that prove success.
- Call out pitfalls and "don't do this" gotchas.
- Link to related areas (but don't duplicate content).
"""


def guide_dir(guide_path: str) -> str:
    """Directory a guide documents ("" for the repository root)."""
    return posixpath.dirname(guide_path)


def child_summaries(summary: LayerSummary, guide_path: str) -> dict[str, str]:
    """Entries of the lower layers' summaries nested under `guide_path`'s directory."""
    directory = guide_dir(guide_path)
    prefix = f"{directory}/" if directory else ""
    return {
        child: diff
        for child, diff in sorted(summary.items())
        if child != guide_path and child.startswith(prefix)
    }


def trim_diff(diff: str, max_chars: int | None = None, keep_lines: int | None = None) -> str:
    """Keep the head and tail of an oversized diff."""
    max_chars = max_chars or config.MAX_DIFF_CHARS
    keep_lines = keep_lines or config.DIFF_KEEP_LINES
    if len(diff) <= max_chars:
        return diff
    lines = diff.split("\n")
    if len(lines) <= keep_lines * 2:
        return diff
    return "\n".join(
        lines[:keep_lines] + ["", "... (trimmed middle for length) ...", ""] + lines[-keep_lines:]
    )


def make_prompt(context: GuideContext) -> str:
    """Render the update prompt for one guide."""
    git = context.git
    repo_info = f"Repo: {git.remote}  |  " if git.remote else ""
    repo_info += f"Branch: {git.branch}  |  Commit: {git.sha}"

    parts = [
        HEADER,
        repo_info,
        f"Directory: {context.dir_path or '.'}",
        f"Guide path: {context.guide_path}",
        "",
        "---",
        "",
        "# DIFF (directory-scoped)",
        f"```diff\n{trim_diff(context.diff)}\n```",
        "",
        "---",
        "",
        "# CURRENT GUIDE",
        f"```markdown\n{context.current_guide}\n```",
    ]

    if context.child_updates:
        blocks = [
            f"### {child}\n```diff\n{diff}\n```"
            for child, diff in context.child_updates.items()
        ]
        parts += [
            "",
            "---",
            "",
            "# CHILD GUIDE UPDATES",
            "",
            "The following child guides were updated in the layer below:",
            "",
            "\n\n".join(blocks),
        ]

    parts += [
        "",
        "Remember:",
        "- Keep changes surgical and justified by the diff",
        "- Preserve the guide's structure and existing links",
        "- If nothing needs changing, answer: NO-CHANGES",
    ]
    return "\n".join(parts) + "\n"
