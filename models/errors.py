"""
Error types that abort a run.

Per-guide failures are not exceptions; they are recorded as outcomes.
Only conditions the caller cannot continue past are raised.
"""

from __future__ import annotations


class GuideSyncError(Exception):
    """Base class for run-level failures."""


class VCSError(GuideSyncError):
    """Git could not answer a question the run depends on."""

    def __init__(self, command: str, detail: str = ""):
        self.command = command
        self.detail = detail.strip()
        message = f"git {command} failed"
        if self.detail:
            message += f": {self.detail}"
        super().__init__(message)


class RunStateError(GuideSyncError):
    """The run-state store rejected or lost a write."""
