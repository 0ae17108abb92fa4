"""Rights and inheritance vocabulary.

Native encodings (PowerShell FileSystemRights / InheritanceFlags /
PropagationFlags strings or their .NET enum integers, numeric access masks and
combined ACE flag bytes) are first adapted into the closed enums `Right` and
`Scope`; label tables then map the enums to the friendly names used in
templates and reports.

Anything outside the tables is passed through as its literal string form
(`pass_through`) so a new or platform-specific encoding shows up as a
label in the report instead of failing the audit.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from folder_audit.models import ALLOW, DENY

logger = logging.getLogger(__name__)

NativeValue = Union[str, int, None]


class Right(Enum):
    FULL_CONTROL = "full_control"
    MODIFY = "modify"
    READ_AND_EXECUTE = "read_and_execute"
    READ_AND_WRITE = "read_and_write"
    LIST_DIRECTORY = "list_directory"
    READ = "read"
    WRITE = "write"


class Scope(Enum):
    THIS_FOLDER_ONLY = "this_folder_only"
    THIS_FOLDER_SUBFOLDERS_FILES = "this_folder_subfolders_files"
    THIS_FOLDER_SUBFOLDERS = "this_folder_subfolders"
    THIS_FOLDER_FILES = "this_folder_files"
    SUBFOLDERS_FILES_ONLY = "subfolders_files_only"
    SUBFOLDERS_ONLY = "subfolders_only"
    FILES_ONLY = "files_only"


RIGHT_LABELS: Dict[Right, str] = {
    Right.FULL_CONTROL: "FullControl",
    Right.MODIFY: "Modify",
    Right.READ_AND_EXECUTE: "ReadAndExecute",
    Right.READ_AND_WRITE: "ReadAndWrite",
    Right.LIST_DIRECTORY: "ListDirectory",
    Right.READ: "Read",
    Right.WRITE: "Write",
}

SCOPE_LABELS: Dict[Scope, str] = {
    Scope.THIS_FOLDER_ONLY: "This folder only",
    Scope.THIS_FOLDER_SUBFOLDERS_FILES: "This folder, subfolders and files",
    Scope.THIS_FOLDER_SUBFOLDERS: "This folder and subfolders",
    Scope.THIS_FOLDER_FILES: "This folder and files",
    Scope.SUBFOLDERS_FILES_ONLY: "Subfolders and files only",
    Scope.SUBFOLDERS_ONLY: "Subfolders only",
    Scope.FILES_ONLY: "Files only",
}

# FileSystemRights token sets as printed by Get-Acl; Synchronize is dropped first
RIGHT_NAME_SETS: Dict[FrozenSet[str], Right] = {
    frozenset({"FullControl"}): Right.FULL_CONTROL,
    frozenset({"Modify"}): Right.MODIFY,
    frozenset({"ReadAndExecute"}): Right.READ_AND_EXECUTE,
    frozenset({"Read", "Write"}): Right.READ_AND_WRITE,
    frozenset({"ReadAndExecute", "Write"}): Right.READ_AND_WRITE,
    frozenset({"ListDirectory"}): Right.LIST_DIRECTORY,
    frozenset({"Read"}): Right.READ,
    frozenset({"Write"}): Right.WRITE,
}

RIGHT_MASKS: Dict[int, Right] = {
    0x1F01FF: Right.FULL_CONTROL,
    0x1301BF: Right.MODIFY,
    0x301BF: Right.MODIFY,
    0x1200A9: Right.READ_AND_EXECUTE,
    0x200A9: Right.READ_AND_EXECUTE,
    0x12019F: Right.READ_AND_WRITE,
    0x120089: Right.READ,
    0x20089: Right.READ,
    0x100116: Right.WRITE,
    0x116: Right.WRITE,
    0x100001: Right.LIST_DIRECTORY,
    # generic rights, usually on CREATOR OWNER entries
    0x10000000: Right.FULL_CONTROL,
    0xE0010000: Right.MODIFY,
    0xA0000000: Right.READ_AND_EXECUTE,
}

# ACE flag bits
OBJECT_INHERIT = 0x1
CONTAINER_INHERIT = 0x2
NO_PROPAGATE_INHERIT = 0x4
INHERIT_ONLY = 0x8

FLAG_NAMES: Dict[str, int] = {
    "none": 0,
    "objectinherit": OBJECT_INHERIT,
    "containerinherit": CONTAINER_INHERIT,
    "nopropagateinherit": NO_PROPAGATE_INHERIT,
    "inheritonly": INHERIT_ONLY,
}

# .NET InheritanceFlags / PropagationFlags enum values, as ConvertTo-Json exports them
NET_INHERITANCE_BITS: Dict[int, int] = {1: CONTAINER_INHERIT, 2: OBJECT_INHERIT}
NET_PROPAGATION_BITS: Dict[int, int] = {1: NO_PROPAGATE_INHERIT, 2: INHERIT_ONLY}

SCOPE_FLAGS: Dict[int, Scope] = {
    0x0: Scope.THIS_FOLDER_ONLY,
    0x1: Scope.THIS_FOLDER_FILES,
    0x2: Scope.THIS_FOLDER_SUBFOLDERS,
    0x3: Scope.THIS_FOLDER_SUBFOLDERS_FILES,
    0x9: Scope.FILES_ONLY,
    0xA: Scope.SUBFOLDERS_ONLY,
    0xB: Scope.SUBFOLDERS_FILES_ONLY,
}


def _as_int(value: NativeValue) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if value is None:
        return None
    try:
        return int(str(value).strip(), 0)
    except ValueError:
        return None


def _flag_bits(value: NativeValue, enum_bits: Optional[Dict[int, int]] = None) -> Optional[int]:
    """Turn an InheritanceFlags/PropagationFlags value into ACE flag bits.

    Numbers are read as .NET enum values through `enum_bits`, or as an ACE
    header flags byte when no table is given.
    """
    if value is None:
        return 0
    n = _as_int(value)
    if n is not None and enum_bits is None:
        # the INHERITED_ACE bit (0x10) is provenance, not scope
        return n & 0xF
    if n is not None:
        if n & ~sum(enum_bits):
            return None
        return sum(bit for flag, bit in enum_bits.items() if n & flag)
    bits = 0
    for token in str(value).split(","):
        key = token.strip().lower()
        if not key:
            continue
        if key not in FLAG_NAMES:
            return None
        bits |= FLAG_NAMES[key]
    return bits


def pass_through(value: NativeValue) -> str:
    """Fallback label for an encoding missing from the tables."""
    return "" if value is None else str(value)


def parse_rights(rights: NativeValue) -> Optional[Right]:
    n = _as_int(rights)
    if n is not None:
        # signed 32-bit masks come back negative from some APIs
        return RIGHT_MASKS.get(n & 0xFFFFFFFF)
    if rights is None:
        return None
    tokens = {t.strip() for t in str(rights).split(",") if t.strip()}
    if len(tokens) > 1:
        tokens.discard("Synchronize")
    return RIGHT_NAME_SETS.get(frozenset(tokens))


def parse_scope(inheritance_flags: NativeValue, propagation_flags: NativeValue = None) -> Optional[Scope]:
    """Scope of an ACE.

    With no propagation value, `inheritance_flags` may be a combined ACE
    header flags byte. Separate InheritanceFlags/PropagationFlags fields are
    read as the .NET enums.
    """
    if propagation_flags is None:
        bits = _flag_bits(inheritance_flags)
    else:
        inh = _flag_bits(inheritance_flags, NET_INHERITANCE_BITS)
        prop = _flag_bits(propagation_flags, NET_PROPAGATION_BITS)
        bits = None if inh is None or prop is None else inh | prop
    if bits is None:
        return None
    return SCOPE_FLAGS.get(bits)


def right_to_friendly_name(rights: NativeValue) -> str:
    right = parse_rights(rights)
    if right is None:
        logger.debug("Unknown rights encoding %r passed through", rights)
        return pass_through(rights)
    return RIGHT_LABELS[right]


def inheritance_flags_to_applies_to(inheritance_flags: NativeValue, propagation_flags: NativeValue = None) -> str:
    scope = parse_scope(inheritance_flags, propagation_flags)
    if scope is not None:
        return SCOPE_LABELS[scope]
    logger.debug("Unknown inheritance encoding %r/%r passed through", inheritance_flags, propagation_flags)
    inh = pass_through(inheritance_flags)
    if propagation_flags is None or _flag_bits(propagation_flags, NET_PROPAGATION_BITS) == 0:
        return inh
    return f"{inh}, {propagation_flags}"


def is_inheritable(inheritance_flags: NativeValue) -> bool:
    """False only for the "none" inheritance value."""
    bits = _flag_bits(inheritance_flags)
    if bits is None:
        # unknown names: anything but an explicit none counts as inheritable
        return str(inheritance_flags).strip().lower() not in ("", "none")
    return bool(bits & (OBJECT_INHERIT | CONTAINER_INHERIT))


def parse_access_type(value: NativeValue) -> str:
    """Map exporter spellings of the ACE type onto Allow/Deny."""
    if isinstance(value, int) and not isinstance(value, bool):
        return {0: ALLOW, 1: DENY}.get(value, str(value))
    s = "" if value is None else str(value).strip()
    low = s.lower()
    if low in ("allow", "accessallowed", "grant", "0"):
        return ALLOW
    if low in ("deny", "accessdenied", "1"):
        return DENY
    return s
