"""Folder permission audit engine.

Compares each subfolder's DACL against an optional template of required ACEs
and resolves the ancestor that introduced every inherited ACE.
"""
from __future__ import annotations

from folder_audit.audit import AuditOptions, audit_folders, audit_parent
from folder_audit.differ import diff_aces
from folder_audit.errors import (
    AclAccessDeniedError,
    AclFetchError,
    AclNotFoundError,
    AuditError,
    ConfigurationError,
    SnapshotError,
    TemplateError,
)
from folder_audit.inheritance import AclCache, resolve_source
from folder_audit.normalize import normalize_ace
from folder_audit.template import expand_template, load_template

__all__ = [
    "AclAccessDeniedError",
    "AclCache",
    "AclFetchError",
    "AclNotFoundError",
    "AuditError",
    "AuditOptions",
    "ConfigurationError",
    "SnapshotError",
    "TemplateError",
    "audit_folders",
    "audit_parent",
    "diff_aces",
    "expand_template",
    "load_template",
    "normalize_ace",
    "resolve_source",
]
