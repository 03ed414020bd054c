"""Exceptions raised by cherryplan."""

from typing import Any, Optional


class CherryPlanError(Exception):
    """Base class for cherryplan errors."""

    pass


class InvalidCommitError(CherryPlanError):
    """A commit record is malformed (e.g. has an empty sha)."""

    pass


class InvalidReferenceError(CherryPlanError):
    """A branch or commit reference is missing or invalid."""

    pass


class SnapshotError(CherryPlanError):
    """A snapshot file could not be read or parsed."""

    pass


class CommitAnalysisError(CherryPlanError):
    """Analysis of a single commit failed."""

    def __init__(
        self,
        message: str,
        commit_sha: str,
        phase: str = "",
        cause: Optional[Exception] = None,
    ):
        self.commit_sha = commit_sha
        self.phase = phase
        self.cause = cause
        where = f" during {phase}" if phase else ""
        super().__init__(f"Error analyzing commit {commit_sha[:8]}{where}: {message}")


class AnalysisCancelledError(CherryPlanError):
    """Analysis was cancelled before it completed.

    The results gathered before cancellation are available as ``partial_result``.
    """

    def __init__(self, message: str = "Analysis cancelled", partial_result: Any = None):
        super().__init__(message)
        self.partial_result = partial_result


class ConfigError(CherryPlanError):
    """A configuration value is out of range or of the wrong type."""

    pass
