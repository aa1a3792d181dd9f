"""
Activity: Decision Records — writes an architecture decision record (ADR)
and drafts a commit message after a guide update run.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path

import config
from activities.git_ops import name_status

log = logging.getLogger(__name__)

_ADR_FILE_RE = re.compile(r"^(\d{3})-")

GUIDE_NAMES = tuple(config.ALL_GUIDE_FILENAMES)


def next_adr_number(decisions_dir: Path) -> int:
    """One past the highest NNN- prefix in `decisions_dir`."""
    if not decisions_dir.is_dir():
        return 1
    numbers = [
        int(m.group(1)) for m in (_ADR_FILE_RE.match(p.name) for p in decisions_dir.iterdir()) if m
    ]
    return max(numbers) + 1 if numbers else 1


def render_adr(number: int, guide_diffs: dict[str, str], code_diff: str, today: date | None = None) -> str:
    """Templated ADR listing updated guides with short diff excerpts."""
    today = today or date.today()
    guides_list = "\n".join(f"- {path}" for path in guide_diffs) or "- No guide changes detected"

    excerpts = []
    for path, diff in list(guide_diffs.items())[:3]:
        lines = diff.split("\n")
        more = "\n... (truncated)" if len(lines) > 20 else ""
        excerpts.append(f"### {path}\n```diff\n" + "\n".join(lines[:20]) + f"{more}\n```")
    if len(guide_diffs) > 3:
        excerpts.append(f"... and {len(guide_diffs) - 3} more guides")

    code_lines = code_diff.split("\n")
    code_excerpt = "\n".join(code_lines[:50]) + ("\n... (truncated)" if len(code_lines) > 50 else "")
    excerpt_block = "\n\n".join(excerpts)
    checked = "x" if guide_diffs else " "
    overview = (
        "The following guides were updated to reflect code changes:"
        if guide_diffs else "No guides were updated in this session."
    )

    return f"""# ADR-{number:03d}: Documentation Update

**Status:** Proposed
**Date:** {today.isoformat()}
**Commits:** (Pending)

## Context

Code changes detected that require documentation updates. This ADR captures the changes made to engineering guides.

## Guides Updated

{guides_list}

## Changes Overview

{overview}

{excerpt_block}

## Code Changes Summary

```
{code_excerpt}
```

## Verification

- [{checked}] Guides updated
- [ ] Changes reviewed
- [ ] Ready to commit
"""


def _is_guide_or_decision(path: str) -> bool:
    return path.endswith(GUIDE_NAMES) or path.startswith(config.DECISIONS_DIR.rstrip("/") + "/")


def build_commit_message(guide_paths: list[str], status_lines: list[str], adr_number: int) -> str:
    """Conventional commit message separating guide edits from code edits."""
    code: dict[str, list[str]] = {"A": [], "M": [], "D": []}
    for line in status_lines:
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        kind, path = parts[0][:1], parts[-1]
        if _is_guide_or_decision(path) or kind not in code:
            continue
        if path not in code[kind]:
            code[kind].append(path)

    if guide_paths:
        message = "docs: update engineering guides\n\n"
        message += f"Updated {len(guide_paths)} guide(s) to reflect code changes.\n\n"
        message += "Guides updated:\n" + "\n".join(f"- {p}" for p in guide_paths) + "\n\n"
    else:
        message = "feat: code changes\n\n"

    for kind, label in (("A", "Added"), ("M", "Modified"), ("D", "Deleted")):
        files = code[kind]
        if not files:
            continue
        message += f"{label}:\n" + "\n".join(f"- {f}" for f in files[:5])
        if len(files) > 5:
            message += f"\n... and {len(files) - 5} more"
        message += "\n\n"

    message += f"See: ADR-{adr_number:03d}\n"
    message += "Intent-Updated: yes"
    return message


def write_decision_record(repo_path: str, guide_diffs: dict[str, str], code_diff: str) -> dict:
    """Write the next ADR into the decisions directory and draft a commit message."""
    decisions_dir = Path(repo_path) / config.DECISIONS_DIR
    decisions_dir.mkdir(parents=True, exist_ok=True)
    number = next_adr_number(decisions_dir)
    adr_path = decisions_dir / f"{number:03d}-documentation-update.md"
    adr_path.write_text(render_adr(number, guide_diffs, code_diff))
    log.info("ADR written: %s", adr_path)

    message = build_commit_message(list(guide_diffs), name_status(repo_path), number)
    return {"adr_number": number, "adr_path": str(adr_path), "commit_message": message}
