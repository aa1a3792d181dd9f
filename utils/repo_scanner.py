"""
Repo scanner — guide-file access for a target repository.

All paths handed in and out are repository-relative POSIX strings
("app/api/agents.md"); "" is the repository root directory.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
from pathlib import Path

log = logging.getLogger(__name__)

SKIP_DIRS = {
    ".git", ".venv", "venv", "__pycache__", "node_modules", ".mypy_cache",
    ".pytest_cache", "site", ".tox", "dist", "build", "egg-info", ".intent",
}


class GuideReader:
    """Reads guide files relative to a repository root."""

    def __init__(self, repo_path: Path | str):
        self.root = Path(repo_path)

    def _abs(self, rel: str) -> Path:
        return self.root / rel if rel else self.root

    def exists(self, rel: str) -> bool:
        return self._abs(rel).exists()

    def read(self, rel: str) -> str:
        return self._abs(rel).read_text(errors="replace")

    def write(self, rel: str, content: str) -> None:
        self._abs(rel).write_text(content)

    def find_guide(self, directory: str, filenames: list[str]) -> str | None:
        """Return the first guide name that exists in `directory`, in priority order."""
        for name in filenames:
            candidate = posixpath.join(directory, name) if directory else name
            if self._abs(candidate).is_file():
                return candidate
        return None

    def content_hash(self, rel: str) -> str | None:
        path = self._abs(rel)
        if not path.is_file():
            return None
        return hashlib.sha256(path.read_bytes()).hexdigest()

    def iter_guides(self, filenames: list[str]) -> list[str]:
        """Every guide in the repository, one per directory, sorted."""
        if not self.root.is_dir():
            raise ValueError(f"Repository path does not exist: {self.root}")

        guides: list[str] = []
        directories = [self.root] + sorted(
            p for p in self.root.rglob("*")
            if p.is_dir() and not any(part in SKIP_DIRS for part in p.relative_to(self.root).parts)
        )
        for directory in directories:
            rel_dir = directory.relative_to(self.root).as_posix()
            guide = self.find_guide("" if rel_dir == "." else rel_dir, filenames)
            if guide:
                guides.append(guide)

        log.info("Scanned %s: %d guide(s)", self.root.name or str(self.root), len(guides))
        return sorted(guides)
