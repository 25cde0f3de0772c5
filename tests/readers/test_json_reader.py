"""Tests for JsonAbiReader."""

import json

import pytest

from klib_abi.errors import ParseError
from klib_abi.filters import DumpFilters
from klib_abi.readers import JsonAbiReader, QualifiedName


@pytest.fixture
def reader():
    return JsonAbiReader()


@pytest.fixture
def manifest(tmp_path):
    path = tmp_path / 'testproject.json'
    path.write_text(json.dumps({
        'uniqueName': 'testproject',
        'signatureVersions': [1, 2],
        'manifest': {'Platform': 'NATIVE', 'Native targets': 'linux_x64'},
        'declarations': [
            {
                'kind': 'class',
                'package': 'org.example',
                'name': 'Foo',
                'text': 'final class org.example/Foo',
                'signatures': {'2': 'org.example/Foo|null[0]'},
                'annotations': ['org.example/Marker'],
                'children': [
                    {'kind': 'function', 'package': 'org.example', 'name': 'Foo.bar',
                     'text': 'final fun bar(): kotlin/Int', 'signatures': {'2': 'bar'}},
                ],
            },
            {'kind': 'function', 'package': 'org.example.impl', 'name': 'helper',
             'text': 'final fun org.example.impl/helper()'},
        ],
    }))
    return path


def test_read(reader, manifest):
    library = reader.read(manifest)

    assert library.unique_name == 'testproject'
    assert library.signature_versions == (1, 2)
    assert library.manifest == {'Platform': 'NATIVE', 'Native targets': 'linux_x64'}
    foo, helper = library.declarations
    assert foo.is_class
    assert foo.qualified_name == QualifiedName('org.example', 'Foo')
    assert foo.signatures == {2: 'org.example/Foo|null[0]'}
    assert foo.annotations == {QualifiedName('org.example', 'Marker')}
    assert foo.children[0].text == 'final fun bar(): kotlin/Int'
    assert helper.signatures == {}
    assert helper.children == ()


def test_read_with_filters(reader, manifest):
    filters = DumpFilters.build(ignored_packages=['org.example.impl'], non_public_markers=['org.example.Marker'])
    library = reader.read(manifest, filters.reading_filters())
    assert library.declarations == ()


def test_read_invalid_json(reader, tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text('{"uniqueName": ')
    with pytest.raises(ParseError, match='Invalid ABI manifest'):
        reader.read(path)


def test_read_missing_keys(reader, tmp_path):
    path = tmp_path / 'incomplete.json'
    path.write_text(json.dumps({'declarations': [{'kind': 'class'}]}))
    with pytest.raises(ParseError, match='Malformed ABI manifest'):
        reader.read(path)
