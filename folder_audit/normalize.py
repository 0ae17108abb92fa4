"""Convert provider ACEs into CanonicalAce records."""
from __future__ import annotations

from typing import Iterable, List

from folder_audit.models import CanonicalAce, RawAce
from folder_audit.vocabulary import inheritance_flags_to_applies_to, right_to_friendly_name


def normalize_ace(raw: RawAce) -> CanonicalAce:
    return CanonicalAce(
        principal=raw.identity,
        right_name=right_to_friendly_name(raw.rights),
        access_type=raw.access_type,
        applies_to=inheritance_flags_to_applies_to(raw.inheritance_flags, raw.propagation_flags),
    )


def normalize_aces(entries: Iterable[RawAce]) -> List[CanonicalAce]:
    return [normalize_ace(e) for e in entries]
