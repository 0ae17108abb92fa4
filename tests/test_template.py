import json
from pathlib import Path
import sys

import pytest

# allow importing folder_audit without installing
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from folder_audit.errors import ConfigurationError, TemplateError
from folder_audit.models import CanonicalAce, TemplateRequirement
from folder_audit.template import expand_template, load_template

FULL = 'This folder, subfolders and files'


def write_template(tmp_path: Path, doc, name='template.json') -> Path:
    p = tmp_path / name
    p.write_text(json.dumps(doc), encoding='utf-8')
    return p


def test_expansion_substitutes_folder_name():
    reqs = [
        TemplateRequirement('DOMAIN\\%%FolderName%%', 'Modify', 'Allow', FULL),
        TemplateRequirement('NT AUTHORITY\\SYSTEM', 'FullControl', 'Allow', FULL),
    ]
    expected = expand_template(reqs, 'Finance')
    assert expected == {
        CanonicalAce('DOMAIN\\Finance', 'Modify', 'Allow', FULL),
        CanonicalAce('NT AUTHORITY\\SYSTEM', 'FullControl', 'Allow', FULL),
    }


def test_expansion_replaces_every_token_and_collapses_duplicates():
    reqs = [
        TemplateRequirement('G-%%FolderName%%-%%FolderName%%', 'Read', 'Allow', FULL),
        TemplateRequirement('G-%%FolderName%%-%%FolderName%%', 'Read', 'Allow', FULL),
    ]
    expected = expand_template(reqs, 'HR')
    assert expected == {CanonicalAce('G-HR-HR', 'Read', 'Allow', FULL)}


def test_load_template(tmp_path: Path):
    p = write_template(tmp_path, {
        'Description': 'Department shares',
        'RequiredPermissions': [
            {'Principal': 'CORP\\%%FolderName%%', 'Rights': 'Modify', 'Type': 'Allow', 'AppliesTo': FULL},
            {'Principal': 'NT AUTHORITY\\SYSTEM', 'Rights': 'FullControl', 'Type': 'Allow', 'AppliesTo': FULL},
        ],
    })
    t = load_template(p)
    assert t.description == 'Department shares'
    assert t.source == str(p)
    assert t.requirements[0] == TemplateRequirement('CORP\\%%FolderName%%', 'Modify', 'Allow', FULL)
    assert len(t.requirements) == 2


def test_load_template_accepts_bom(tmp_path: Path):
    p = tmp_path / 'bom.json'
    doc = {'RequiredPermissions': [{'Principal': 'A', 'Rights': 'Read', 'Type': 'Deny', 'AppliesTo': FULL}]}
    p.write_bytes(b'\xef\xbb\xbf' + json.dumps(doc).encode('utf-8'))
    t = load_template(p)
    assert t.requirements[0].access_type == 'Deny'
    assert t.description == ''


def test_missing_template_is_configuration_error(tmp_path: Path):
    missing = tmp_path / 'nope.json'
    with pytest.raises(ConfigurationError) as exc:
        load_template(missing)
    assert str(missing) in str(exc.value)
    assert isinstance(exc.value, TemplateError)


def test_unparsable_template(tmp_path: Path):
    p = tmp_path / 'broken.json'
    p.write_text('{"RequiredPermissions": [', encoding='utf-8')
    with pytest.raises(TemplateError) as exc:
        load_template(p)
    assert exc.value.path == str(p)
    assert exc.value.cause is not None


@pytest.mark.parametrize('doc', [
    [],
    {'Description': 'no list'},
    {'RequiredPermissions': {'Principal': 'A'}},
    {'RequiredPermissions': ['not an object']},
    {'RequiredPermissions': [{'Principal': 'A', 'Rights': 'Read', 'Type': 'Allow'}]},
    {'RequiredPermissions': [{'Principal': '', 'Rights': 'Read', 'Type': 'Allow', 'AppliesTo': FULL}]},
    {'RequiredPermissions': [{'Principal': 'A', 'Rights': 'Read', 'Type': 'Audit', 'AppliesTo': FULL}]},
])
def test_malformed_templates(tmp_path: Path, doc):
    p = write_template(tmp_path, doc)
    with pytest.raises(TemplateError):
        load_template(p)
