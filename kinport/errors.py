"""
Error classes for kinport exports.

The taxonomy is flat and fatal: no error is retried.
- ConfigError: Bad or missing construction input (raised before any network call)
- RemoteQueryError: Non-success HTTP status from the record query API
- NoValidColumnsError: Requested columns share nothing with the fetched fields
- ExportError: Any other failure during a run, prefixed with the run stage

Every public entry point logs and re-raises; nothing is swallowed.
"""

from typing import Optional


class KinportError(Exception):
    """Base exception for kinport."""
    pass


class ConfigError(KinportError):
    """Configuration validation error."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class RemoteQueryError(KinportError):
    """
    Query API returned a non-success status.

    Attributes:
        status_code: HTTP status returned by the service
        message: Remote-provided message (or code, or "Unknown error")
        path: Request path the call was made against
    """

    def __init__(self, status_code: int, message: str, path: str):
        super().__init__(f"HTTP {status_code} from {path}: {message}")
        self.status_code = status_code
        self.message = message
        self.path = path


class NoValidColumnsError(KinportError):
    """None of the explicitly requested field codes exist in the fetched data."""

    def __init__(self, requested: list[str]):
        super().__init__(
            f"No valid columns to export. Requested: {', '.join(requested) or '(none)'}"
        )
        self.requested = list(requested)


class ExportError(KinportError):
    """
    Wrapped failure during an export run.

    The message carries the stage the run was in when it failed, e.g.
    "writing failed: quota exceeded". The original exception is chained.
    """

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
