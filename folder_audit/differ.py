"""Set difference between expected (template) and actual ACEs of a folder."""
from __future__ import annotations

from typing import Dict, Iterable, List

from folder_audit.models import CanonicalAce, DeviationKind, DeviationRecord

KIND_ORDER = {DeviationKind.MISSING: 0, DeviationKind.UNEXPECTED: 1}


def _index(aces: Iterable[CanonicalAce], case_sensitive: bool) -> Dict[CanonicalAce, CanonicalAce]:
    # comparison key -> ace as reported; first spelling wins when folding merges two
    out: Dict[CanonicalAce, CanonicalAce] = {}
    for ace in sorted(set(aces), key=_ace_sort_key):
        key = ace if case_sensitive else ace.folded()
        out.setdefault(key, ace)
    return out


def _ace_sort_key(ace: CanonicalAce):
    return (ace.principal, ace.right_name, ace.access_type, ace.applies_to)


def _record(ace: CanonicalAce, kind: DeviationKind) -> DeviationRecord:
    return DeviationRecord(
        principal=ace.principal,
        right_name=ace.right_name,
        kind=kind,
        access_type=ace.access_type,
        applies_to=ace.applies_to,
    )


def deviation_sort_key(rec: DeviationRecord):
    return (rec.principal, KIND_ORDER[rec.kind], rec.right_name, rec.access_type, rec.applies_to)


def diff_aces(
    expected: Iterable[CanonicalAce],
    actual: Iterable[CanonicalAce],
    case_sensitive: bool = True,
) -> List[DeviationRecord]:
    """Missing (expected, absent) and Unexpected (present, not expected) ACEs.

    Output is sorted by principal, then Missing before Unexpected, then right
    name; access type and applies-to break any remaining ties.
    """
    exp = _index(expected, case_sensitive)
    act = _index(actual, case_sensitive)

    records: List[DeviationRecord] = []
    for key, ace in exp.items():
        if key not in act:
            records.append(_record(ace, DeviationKind.MISSING))
    for key, ace in act.items():
        if key not in exp:
            records.append(_record(ace, DeviationKind.UNEXPECTED))

    records.sort(key=deviation_sort_key)
    return records
