"""
Configuration — loads settings from environment / .env file.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# Paths
PROJECT_ROOT = Path(__file__).parent
TARGET_REPO_PATH = Path(os.getenv("TARGET_REPO_PATH", "."))
RUN_LOGS_DIR = PROJECT_ROOT / "guide_runs"
DECISIONS_DIR = os.getenv("DECISIONS_DIR", ".intent/decisions")

# OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1")

# Temporal
TEMPORAL_HOST = os.getenv("TEMPORAL_HOST", "localhost:7233")
TEMPORAL_TASK_QUEUE = "guide-pilot-queue"
TEMPORAL_NAMESPACE = "default"
USE_TEMPORAL = os.getenv("USE_TEMPORAL", "1") not in ("0", "false", "no", "")

# HTTP API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Postgres (empty = in-memory run state)
DATABASE_URL = os.getenv("DATABASE_URL", "")

# Guides: primary names first, legacy names after. Order is the lookup priority.
GUIDE_FILENAMES = _csv(os.getenv("GUIDE_FILENAMES", "agents.md"))
LEGACY_GUIDE_FILENAMES = _csv(os.getenv("LEGACY_GUIDE_FILENAMES", "CLAUDE.md"))
ALL_GUIDE_FILENAMES = GUIDE_FILENAMES + [
    name for name in LEGACY_GUIDE_FILENAMES if name not in GUIDE_FILENAMES
]

# Changed files with these suffixes never trigger guide updates
IGNORED_CHANGE_SUFFIXES = tuple(_csv(os.getenv("IGNORED_CHANGE_SUFFIXES", ".md")))

# Upstream ref for the "pr" scope
UPSTREAM_REF = os.getenv("UPSTREAM_REF", "origin/main")
# Overrides remote.origin.url in update prompts
GIT_REMOTE_HTTP = os.getenv("GIT_REMOTE_HTTP", "")

# Run finalization: "no_success" fails a run only when nothing succeeded,
# "any_failure" fails it on the first failed guide.
RUN_FAILURE_POLICY = os.getenv("RUN_FAILURE_POLICY", "no_success")

# Diffs larger than this (characters, ~4 chars per token) are trimmed
MAX_DIFF_CHARS = int(os.getenv("MAX_DIFF_CHARS", str(80_000 * 4)))
# Lines kept from each end of a trimmed diff
DIFF_KEEP_LINES = 1_500

# Per-guide update timeout (minutes)
GUIDE_UPDATE_TIMEOUT_MIN = int(os.getenv("GUIDE_UPDATE_TIMEOUT_MIN", "10"))
