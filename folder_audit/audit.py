"""Audit the subfolders of a parent directory.

Two modes:

- enumeration (no template): every folder is reported, deviations are empty;
- audit (template): each folder's ACEs are diffed against the template
  expanded for the folder name, and only deviant folders are reported.

A folder whose own ACL cannot be read becomes a FolderAuditFailure record and
the run carries on with the next folder.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from folder_audit.differ import diff_aces
from folder_audit.errors import AclFetchError
from folder_audit.inheritance import AclCache, resolve_source
from folder_audit.models import (
    AuditedAce,
    AuditRecord,
    FolderAuditFailure,
    FolderAuditResult,
    FolderDescriptor,
    Template,
)
from folder_audit.normalize import normalize_ace
from folder_audit.providers import AclProvider
from folder_audit.template import expand_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditOptions:
    template: Optional[Template] = None
    # resolve and attach every ACE with its inheritance source
    include_aces: bool = True
    case_sensitive: bool = True


def audit_folder(
    folder: FolderDescriptor,
    provider: AclProvider,
    options: AuditOptions,
    cache: AclCache,
) -> Optional[AuditRecord]:
    """Audit one folder. Returns None for a compliant folder in template mode."""
    try:
        acl = cache.get_or_fetch(folder.path, provider.get_acl)
    except AclFetchError as e:
        logger.warning("Skipping %s: %s", folder.path, e)
        return FolderAuditFailure(path=folder.path, name=folder.name, last_modified=folder.last_modified, error=str(e))

    canonical = [normalize_ace(raw) for raw in acl.entries]

    deviations = ()
    if options.template is not None:
        expected = expand_template(options.template.requirements, folder.name)
        deviations = tuple(diff_aces(expected, canonical, case_sensitive=options.case_sensitive))
        if not deviations:
            logger.debug("%s matches the template", folder.path)
            return None

    aces = ()
    if options.include_aces:
        aces = tuple(
            AuditedAce(
                ace=ace,
                inherited_from=resolve_source(folder.path, raw, cache, provider.get_acl, options.case_sensitive),
                is_inherited=raw.is_inherited,
            )
            for raw, ace in zip(acl.entries, canonical)
        )

    return FolderAuditResult(
        path=folder.path,
        name=folder.name,
        owner=acl.owner,
        last_modified=folder.last_modified,
        inheritance_enabled=not acl.is_protected,
        is_deviant=bool(deviations),
        deviations=deviations,
        aces=aces,
    )


def audit_folders(
    folders: Iterable[FolderDescriptor],
    provider: AclProvider,
    options: Optional[AuditOptions] = None,
    cache: Optional[AclCache] = None,
) -> List[AuditRecord]:
    options = options or AuditOptions()
    cache = cache if cache is not None else AclCache()

    results: List[AuditRecord] = []
    scanned = 0
    for folder in folders:
        scanned += 1
        record = audit_folder(folder, provider, options, cache)
        if record is not None:
            results.append(record)

    failed = sum(1 for r in results if isinstance(r, FolderAuditFailure))
    logger.info(
        "Audited %d folders: %d reported, %d unreadable (ACL cache: %d paths, %d hits)",
        scanned, len(results), failed, len(cache), cache.hits,
    )
    return results


def audit_parent(
    parent_path: str,
    provider: AclProvider,
    options: Optional[AuditOptions] = None,
) -> List[AuditRecord]:
    """List the direct subfolders of `parent_path` and audit them with a fresh cache."""
    folders = provider.list_subfolders(parent_path)
    logger.info("Found %d subfolders under %s", len(folders), parent_path)
    return audit_folders(folders, provider, options, AclCache())
