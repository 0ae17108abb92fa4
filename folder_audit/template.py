"""Load permission templates and expand them for a concrete folder.

Template file format::

    {
      "Description": "Department share layout",
      "RequiredPermissions": [
        {"Principal": "CORP\\\\%%FolderName%%-RW", "Rights": "Modify",
         "Type": "Allow", "AppliesTo": "This folder, subfolders and files"}
      ]
    }

`Rights` and `AppliesTo` must use the labels produced by folder_audit.vocabulary.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union, cast

from folder_audit.errors import TemplateError
from folder_audit.models import ACCESS_TYPES, FOLDER_NAME_TOKEN, CanonicalAce, Template, TemplateRequirement

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("Principal", "Rights", "Type", "AppliesTo")


def _get_ci(d: Dict[str, Any], key: str) -> Any:
    for k, v in d.items():
        if k.lower() == key.lower():
            return v
    return None


def _parse_requirement(path: Path, idx: int, entry: Any) -> TemplateRequirement:
    if not isinstance(entry, dict):
        raise TemplateError(path, f"RequiredPermissions[{idx}] is not an object")
    entry_d = cast(Dict[str, Any], entry)
    values: Dict[str, str] = {}
    for name in REQUIRED_FIELDS:
        v = _get_ci(entry_d, name)
        if v is None or not str(v).strip():
            raise TemplateError(path, f"RequiredPermissions[{idx}] is missing '{name}'")
        values[name] = str(v)
    # Type is matched exactly against the provider's Allow/Deny
    if values["Type"] not in ACCESS_TYPES:
        raise TemplateError(path, f"RequiredPermissions[{idx}] has Type '{values['Type']}', expected Allow or Deny")
    return TemplateRequirement(
        principal_pattern=values["Principal"],
        right_name=values["Rights"],
        access_type=values["Type"],
        applies_to=values["AppliesTo"],
    )


def load_template(path: Union[str, Path]) -> Template:
    """Read and validate a template file. Any problem raises TemplateError."""
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8-sig") as fh:
            j = json.load(fh)
    except FileNotFoundError as e:
        raise TemplateError(p, "file not found", e) from e
    except json.JSONDecodeError as e:
        raise TemplateError(p, "not valid JSON", e) from e
    except OSError as e:
        raise TemplateError(p, "file could not be read", e) from e

    if not isinstance(j, dict):
        raise TemplateError(p, "top-level value must be an object")
    template = template_from_dict(cast(Dict[str, Any], j), str(p))
    logger.info("Loaded template %s with %d required permissions", p, len(template.requirements))
    return template


def expand_principal(pattern: str, folder_name: str) -> str:
    return pattern.replace(FOLDER_NAME_TOKEN, folder_name)


def expand_template(requirements: Iterable[TemplateRequirement], folder_name: str) -> FrozenSet[CanonicalAce]:
    """Expected ACEs for one folder; duplicate requirements collapse."""
    return frozenset(
        CanonicalAce(
            principal=expand_principal(r.principal_pattern, folder_name),
            right_name=r.right_name,
            access_type=r.access_type,
            applies_to=r.applies_to,
        )
        for r in requirements
    )


def template_from_dict(doc: Dict[str, Any], source: Optional[str] = None) -> Template:
    """Build a template from an already-parsed document (same validation as load_template)."""
    src = Path(source or "<memory>")
    raw = _get_ci(doc, "RequiredPermissions")
    if not isinstance(raw, list):
        raise TemplateError(src, "'RequiredPermissions' must be a list")
    reqs: List[TemplateRequirement] = [_parse_requirement(src, i, e) for i, e in enumerate(cast(List[Any], raw))]
    desc = _get_ci(doc, "Description")
    return Template(description=str(desc) if desc is not None else "", requirements=tuple(reqs), source=str(src))
