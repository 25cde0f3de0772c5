"""Tests for base AbiReader interface."""

import pytest
from pathlib import Path
from klib_abi.readers.base import AbiDeclaration, AbiReader, LibraryAbi, QualifiedName, find_signature_versions


def test_qualified_name_parse():
    """Test parsing of package/relative names."""
    assert QualifiedName.parse('org.example/Foo.Bar') == QualifiedName('org.example', 'Foo.Bar')
    assert QualifiedName.parse('Foo') == QualifiedName('', 'Foo')
    assert str(QualifiedName('org.example', 'Foo')) == 'org.example/Foo'


def test_declaration_render_class():
    """Test class declarations open a block and carry their signature."""
    decl = AbiDeclaration(
        kind='class',
        qualified_name=QualifiedName('org.example', 'Foo'),
        text='final class org.example/Foo',
        signatures={1: 'org.example/Foo|null', 2: 'org.example/Foo|null[0]'},
    )

    assert decl.is_class
    assert decl.render(2) == 'final class org.example/Foo { // org.example/Foo|null[0]'
    assert decl.render(1) == 'final class org.example/Foo { // org.example/Foo|null'


def test_declaration_render_without_signature():
    """Test declarations without a signature for the version render bare."""
    decl = AbiDeclaration('function', QualifiedName('org.example', 'f'), 'final fun org.example/f()')
    assert not decl.is_class
    assert decl.render(2) == 'final fun org.example/f()'


def test_abi_reader_is_abstract():
    """Test that AbiReader cannot be instantiated directly."""
    with pytest.raises(TypeError):
        AbiReader()


class DummyReader(AbiReader):
    """Minimal concrete implementation for testing."""

    def __init__(self, declarations):
        self.declarations = declarations

    def read(self, artifact, reading_filters=()):
        return LibraryAbi(
            unique_name=Path(artifact).stem,
            signature_versions=(2,),
            declarations=self.apply_filters(self.declarations, reading_filters),
        )


class ExcludeNamed:
    def __init__(self, name):
        self.name = name

    def excludes(self, declaration):
        return declaration.qualified_name.relative_name == self.name


def test_apply_filters_drops_nested_declarations():
    """Test filters apply at every nesting level."""
    inner = AbiDeclaration('function', QualifiedName('p', 'Foo.hidden'), 'fun hidden()')
    kept = AbiDeclaration('function', QualifiedName('p', 'Foo.bar'), 'fun bar()')
    foo = AbiDeclaration('class', QualifiedName('p', 'Foo'), 'class p/Foo', children=(kept, inner))
    other = AbiDeclaration('class', QualifiedName('p', 'Other'), 'class p/Other', children=(kept,))

    library = DummyReader([foo, other]).read('lib.json', [ExcludeNamed('Foo.hidden'), ExcludeNamed('Other')])

    assert library.unique_name == 'lib'
    assert [d.qualified_name.relative_name for d in library.declarations] == ['Foo']
    assert library.declarations[0].children == (kept,)


def test_find_signature_versions():
    """Test only supported signature versions are reported, sorted."""
    library = LibraryAbi('lib', signature_versions=(3, 2, 1, 2))
    assert find_signature_versions(library) == (1, 2)
    assert find_signature_versions(library, supported=[3]) == (3,)
    assert find_signature_versions(LibraryAbi('lib')) == ()
