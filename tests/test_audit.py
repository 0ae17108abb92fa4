from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
import sys

# allow importing folder_audit without installing
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from folder_audit.audit import AuditOptions, audit_folders, audit_parent
from folder_audit.errors import AclAccessDeniedError, AclNotFoundError
from folder_audit.inheritance import AclCache
from folder_audit.models import (
    SOURCE_THIS_FOLDER,
    AclSnapshot,
    DeviationKind,
    FolderAuditFailure,
    FolderAuditResult,
    FolderDescriptor,
    RawAce,
    Template,
    TemplateRequirement,
)

CIOI = 'ContainerInherit, ObjectInherit'
FULL = 'This folder, subfolders and files'
PARENT = '/shares/dept'
STAMP = datetime(2026, 2, 9, 12, 0, tzinfo=timezone.utc)


class FakeProvider:
    def __init__(self, acls):
        self.acls = acls
        self.calls = Counter()

    def list_subfolders(self, parent_path):
        prefix = parent_path.rstrip('/') + '/'
        names = sorted(p[len(prefix):] for p in self.acls if p.startswith(prefix) and '/' not in p[len(prefix):])
        return [FolderDescriptor(prefix + n, n, STAMP) for n in names]

    def get_acl(self, path):
        self.calls[path] += 1
        val = self.acls.get(path)
        if val is None:
            raise AclNotFoundError(path)
        if isinstance(val, Exception):
            raise val
        return val


def acl(*entries, protected=False):
    return AclSnapshot(owner='BUILTIN\\Administrators', is_protected=protected, entries=tuple(entries))


def system(rights='FullControl', inherited=False):
    return RawAce('SYSTEM', rights, 'Allow', CIOI, 'None', inherited)


def folder(name):
    return FolderDescriptor(f'{PARENT}/{name}', name, STAMP)


SYSTEM_ONLY = Template('SYSTEM only', (TemplateRequirement('SYSTEM', 'FullControl', 'Allow', FULL),))


def test_template_mode_reports_only_deviant_folders():
    provider = FakeProvider({
        f'{PARENT}/F': acl(system()),
        f'{PARENT}/G': acl(system('Modify, Synchronize')),
    })
    results = audit_folders([folder('F'), folder('G')], provider, AuditOptions(template=SYSTEM_ONLY))

    assert len(results) == 1
    g = results[0]
    assert isinstance(g, FolderAuditResult)
    assert g.path == f'{PARENT}/G'
    assert g.is_deviant
    assert [(d.principal, d.right_name, d.kind) for d in g.deviations] == [
        ('SYSTEM', 'FullControl', DeviationKind.MISSING),
        ('SYSTEM', 'Modify', DeviationKind.UNEXPECTED),
    ]


def test_compliant_folder_in_template_mode_is_omitted():
    provider = FakeProvider({f'{PARENT}/F': acl(system())})
    assert audit_folders([folder('F')], provider, AuditOptions(template=SYSTEM_ONLY)) == []


def test_template_is_expanded_per_folder():
    template = Template('dept', (
        TemplateRequirement('CORP\\%%FolderName%%', 'Modify', 'Allow', FULL),
    ))
    provider = FakeProvider({
        f'{PARENT}/Finance': acl(RawAce('CORP\\Finance', 'Modify, Synchronize', 'Allow', CIOI)),
        f'{PARENT}/HR': acl(RawAce('CORP\\Finance', 'Modify, Synchronize', 'Allow', CIOI)),
    })
    results = audit_folders([folder('Finance'), folder('HR')], provider, AuditOptions(template=template))
    assert [r.path for r in results] == [f'{PARENT}/HR']
    assert [(d.principal, d.kind) for d in results[0].deviations] == [
        ('CORP\\Finance', DeviationKind.UNEXPECTED),
        ('CORP\\HR', DeviationKind.MISSING),
    ]


def test_enumeration_mode_reports_every_folder_with_sources():
    provider = FakeProvider({
        PARENT: acl(system(), protected=True),
        f'{PARENT}/A': acl(system(inherited=True), RawAce('CORP\\A', 'Read, Synchronize', 'Allow', 'None')),
        f'{PARENT}/B': acl(system(inherited=True), protected=True),
    })
    results = audit_parent(PARENT, provider)

    assert [r.name for r in results] == ['A', 'B']
    a, b = results
    assert isinstance(a, FolderAuditResult)
    assert not a.is_deviant and a.deviations == ()
    assert a.inheritance_enabled and not b.inheritance_enabled
    assert a.owner == 'BUILTIN\\Administrators'
    assert a.last_modified == STAMP
    assert [(x.ace.principal, x.ace.right_name, x.ace.applies_to, x.inherited_from) for x in a.aces] == [
        ('SYSTEM', 'FullControl', FULL, PARENT),
        ('CORP\\A', 'Read', 'This folder only', SOURCE_THIS_FOLDER),
    ]
    assert a.aces[0].is_inherited and not a.aces[1].is_inherited


def test_parent_acl_fetched_once_for_all_siblings():
    provider = FakeProvider({
        PARENT: acl(system()),
        f'{PARENT}/A': acl(system(inherited=True)),
        f'{PARENT}/B': acl(system(inherited=True)),
        f'{PARENT}/C': acl(system(inherited=True)),
    })
    cache = AclCache()
    audit_folders([folder('A'), folder('B'), folder('C')], provider, AuditOptions(), cache)
    assert provider.calls[PARENT] == 1
    assert all(n == 1 for n in provider.calls.values())


def test_unreadable_folder_does_not_stop_the_run():
    provider = FakeProvider({
        f'{PARENT}/A': AclAccessDeniedError(f'{PARENT}/A'),
        f'{PARENT}/B': acl(system('Modify')),
    })
    results = audit_folders([folder('A'), folder('B'), folder('Gone')], provider, AuditOptions(template=SYSTEM_ONLY))

    assert [type(r) for r in results] == [FolderAuditFailure, FolderAuditResult, FolderAuditFailure]
    assert 'Access denied' in results[0].error
    assert results[0].path == f'{PARENT}/A'
    assert 'not found' in results[2].error


def test_deviation_only_records_skip_inheritance_lookups():
    provider = FakeProvider({f'{PARENT}/G': acl(system('Modify', inherited=True))})
    results = audit_folders([folder('G')], provider, AuditOptions(template=SYSTEM_ONLY, include_aces=False))
    assert results[0].aces == ()
    assert results[0].is_deviant
    assert PARENT not in provider.calls


def test_case_insensitive_audit():
    template = Template('t', (TemplateRequirement('corp\\finance', 'modify', 'Allow', FULL.lower()),))
    provider = FakeProvider({f'{PARENT}/Finance': acl(RawAce('CORP\\Finance', 'Modify', 'Allow', CIOI))})
    opts = AuditOptions(template=template, case_sensitive=False)
    assert audit_folders([folder('Finance')], provider, opts) == []
    assert len(audit_folders([folder('Finance')], provider, AuditOptions(template=template))) == 1
