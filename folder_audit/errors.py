"""Exception hierarchy for the audit engine.

- ConfigurationError / TemplateError: fatal, raised before any folder is audited.
- AclFetchError and subclasses: raised by ACL providers; the orchestrator and the
  inheritance resolver recover from them locally.
- SnapshotError: unreadable or malformed forensic snapshot input.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class AuditError(Exception):
    """Base class for every error raised by folder_audit."""


class ConfigurationError(AuditError):
    """Invalid or missing run configuration."""


class TemplateError(ConfigurationError):
    """The permission template could not be read or is malformed."""

    def __init__(self, path: Union[str, Path], reason: str, cause: Optional[BaseException] = None) -> None:
        self.path = str(path)
        self.reason = reason
        self.cause = cause
        msg = f"Invalid permission template {self.path}: {reason}"
        if cause is not None:
            msg = f"{msg} ({cause})"
        super().__init__(msg)


class AclFetchError(AuditError):
    """The ACL of a path could not be acquired."""

    def __init__(self, path: str, message: str = "ACL could not be read") -> None:
        self.path = path
        super().__init__(f"{message}: {path}")


class AclAccessDeniedError(AclFetchError):
    def __init__(self, path: str) -> None:
        super().__init__(path, "Access denied")


class AclNotFoundError(AclFetchError):
    def __init__(self, path: str) -> None:
        super().__init__(path, "Path not found")


class SnapshotError(AuditError):
    """Forensic snapshot input is missing or unreadable."""
