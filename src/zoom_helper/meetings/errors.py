"""Errors raised by the collaborators of the sales analysis pipeline.

Both are recovered inside analysis jobs (logged and counted) and never
reach the webhook caller.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures inside a sales analysis run."""


class StorageError(AnalysisError):
    """Transcript fetch or result persistence failed."""


class ModelError(AnalysisError):
    """Language model call failed or returned unusable output."""
