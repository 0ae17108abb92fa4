"""Fixed-field records passed between the audit components.

Raw records (RawAce, AclSnapshot, FolderDescriptor) are what ACL providers hand
to the engine. Canonical records (CanonicalAce, DeviationRecord, AuditedAce,
FolderAuditResult, FolderAuditFailure) are what the engine produces.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union

ALLOW = "Allow"
DENY = "Deny"
ACCESS_TYPES = (ALLOW, DENY)

FOLDER_NAME_TOKEN = "%%FolderName%%"

# inheritance source sentinels
SOURCE_THIS_FOLDER = "<none (this folder)>"
SOURCE_UNKNOWN = "<source unknown>"
SOURCE_NOT_ACCESSIBLE = "<source not accessible>"


class DeviationKind(str, Enum):
    MISSING = "Missing"
    UNEXPECTED = "Unexpected"


@dataclass(frozen=True)
class RawAce:
    """One ACE exactly as the ACL provider reported it.

    `rights`, `inheritance_flags` and `propagation_flags` are opaque native
    encodings (PowerShell enum strings or numeric masks); the vocabulary module
    turns them into labels.
    """

    identity: str
    rights: Union[str, int]
    access_type: str = ALLOW
    inheritance_flags: Union[str, int] = "None"
    propagation_flags: Union[str, int] = "None"
    is_inherited: bool = False


@dataclass(frozen=True)
class AclSnapshot:
    owner: str
    is_protected: bool
    entries: Tuple[RawAce, ...] = ()


@dataclass(frozen=True)
class FolderDescriptor:
    path: str
    name: str
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class CanonicalAce:
    """Comparable form of an ACE. Provenance (is_inherited) is deliberately absent."""

    principal: str
    right_name: str
    access_type: str
    applies_to: str

    def folded(self) -> "CanonicalAce":
        return CanonicalAce(
            self.principal.casefold(),
            self.right_name.casefold(),
            self.access_type.casefold(),
            self.applies_to.casefold(),
        )


@dataclass(frozen=True)
class TemplateRequirement:
    principal_pattern: str
    right_name: str
    access_type: str
    applies_to: str


@dataclass(frozen=True)
class Template:
    description: str
    requirements: Tuple[TemplateRequirement, ...]
    source: str = ""


@dataclass(frozen=True)
class DeviationRecord:
    principal: str
    right_name: str
    kind: DeviationKind
    access_type: str = ""
    applies_to: str = ""


@dataclass(frozen=True)
class AuditedAce:
    ace: CanonicalAce
    inherited_from: str
    is_inherited: bool = False


@dataclass(frozen=True)
class FolderAuditResult:
    path: str
    name: str
    owner: str
    last_modified: Optional[datetime]
    inheritance_enabled: bool
    is_deviant: bool
    deviations: Tuple[DeviationRecord, ...] = ()
    aces: Tuple[AuditedAce, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FolderAuditFailure:
    """Placeholder emitted when a folder's own ACL could not be read."""

    path: str
    name: str
    last_modified: Optional[datetime]
    error: str


AuditRecord = Union[FolderAuditResult, FolderAuditFailure]
