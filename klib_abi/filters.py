"""Filters affecting how a library ABI is represented in a single-target dump."""

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, FrozenSet, Iterable, Iterator, List, Optional, TextIO, Union

from .readers import AbiDeclaration, AbiReader, LibraryAbi, QualifiedName, create_reader
from .readers.base import find_signature_versions


@dataclass(frozen=True)
class SignatureVersion:
    """KLib ABI signature version to render; ``LATEST`` picks the newest available."""
    version: Optional[int]

    LATEST: ClassVar["SignatureVersion"]

    @classmethod
    def of(cls, version: int) -> "SignatureVersion":
        if version < 1:
            raise ValueError(f"Signature version must be positive, got {version}")
        return cls(version)

    @classmethod
    def parse(cls, text: Union[str, int]) -> "SignatureVersion":
        if isinstance(text, int):
            return cls.of(text)
        if text.strip().lower() == "latest":
            return cls.LATEST
        try:
            return cls.of(int(text))
        except ValueError:
            raise ValueError(f"Invalid signature version: {text!r}") from None

    @property
    def is_latest(self) -> bool:
        return self.version is None

    def __str__(self) -> str:
        return "latest" if self.is_latest else str(self.version)


SignatureVersion.LATEST = SignatureVersion(None)


def _class_name_to_compound_name(name: str) -> str:
    # '$' separates nested classes unless it starts a segment, ends the
    # name or follows another '$': Outer$$$Inner -> Outer.$$Inner
    segments = []
    builder = ""
    for idx, c in enumerate(name):
        if c != "$" or not builder or idx == len(name) - 1:
            builder += c
            continue
        if builder[-1] == "$":
            builder += c
            continue
        segments.append(builder)
        builder = ""
    if builder:
        segments.append(builder)
    return ".".join(segments)


def to_abi_qualified_name(name: str) -> Optional[QualifiedName]:
    """Convert a binary class name (``a.b.Outer$Inner``) into a qualified name.

    Blank names and names in internal form (with ``/``) are rejected.
    """
    if not name.strip() or "/" in name:
        return None
    package, _, class_name = name.rpartition(".")
    return QualifiedName(package, _class_name_to_compound_name(class_name))


def _to_qualified_names(names: Iterable[str]) -> FrozenSet[QualifiedName]:
    result = (to_abi_qualified_name(name) for name in names)
    return frozenset(qn for qn in result if qn is not None)


@dataclass(frozen=True)
class ExcludedClasses:
    names: FrozenSet[QualifiedName]

    def excludes(self, declaration: AbiDeclaration) -> bool:
        return declaration.is_class and declaration.qualified_name in self.names


@dataclass(frozen=True)
class NonPublicMarkerAnnotations:
    markers: FrozenSet[QualifiedName]

    def excludes(self, declaration: AbiDeclaration) -> bool:
        return not self.markers.isdisjoint(declaration.annotations)


@dataclass(frozen=True)
class ExcludedPackages:
    """Excludes a package together with all of its sub-packages."""
    packages: FrozenSet[str]

    def excludes(self, declaration: AbiDeclaration) -> bool:
        package = declaration.qualified_name.package
        return any(package == p or package.startswith(p + ".") for p in self.packages)


ReadingFilter = Union[ExcludedClasses, NonPublicMarkerAnnotations, ExcludedPackages]


@dataclass(frozen=True)
class DumpFilters:
    """Declarations to leave out of a dump and the signature version to render.

    ignored_packages:   packages (and sub-packages) whose declarations are dropped
    ignored_classes:    binary names of classes to drop, e.g. ``a.b.Outer$Inner``
    non_public_markers: annotations marking declarations as non-public
    signature_version:  version of the ABI signatures to render
    """
    ignored_packages: FrozenSet[str] = frozenset()
    ignored_classes: FrozenSet[str] = frozenset()
    non_public_markers: FrozenSet[str] = frozenset()
    signature_version: SignatureVersion = SignatureVersion.LATEST

    DEFAULT: ClassVar["DumpFilters"]

    @classmethod
    def build(cls, ignored_packages: Iterable[str] = (), ignored_classes: Iterable[str] = (),
              non_public_markers: Iterable[str] = (),
              signature_version: Union[SignatureVersion, str, int] = SignatureVersion.LATEST) -> "DumpFilters":
        if not isinstance(signature_version, SignatureVersion):
            signature_version = SignatureVersion.parse(signature_version)
        return cls(
            ignored_packages=frozenset(ignored_packages),
            ignored_classes=frozenset(ignored_classes),
            non_public_markers=frozenset(non_public_markers),
            signature_version=signature_version,
        )

    def reading_filters(self) -> List[ReadingFilter]:
        """Exclusion predicates in evaluation order: classes, markers, packages."""
        filters: List[ReadingFilter] = []
        classes = _to_qualified_names(self.ignored_classes)
        if classes:
            filters.append(ExcludedClasses(classes))
        markers = _to_qualified_names(self.non_public_markers)
        if markers:
            filters.append(NonPublicMarkerAnnotations(markers))
        if self.ignored_packages:
            filters.append(ExcludedPackages(frozenset(self.ignored_packages)))
        return filters


DumpFilters.DEFAULT = DumpFilters()


def select_signature_version(library: LibraryAbi, requested: SignatureVersion,
                             supported: Optional[Iterable[int]] = None) -> int:
    """Pick the signature version to render for ``library``.

    Raises:
        ValueError: If no version can be chosen or the requested one is unsupported
    """
    available = find_signature_versions(library, supported)
    if requested.is_latest:
        if not available:
            raise ValueError(f"Can't choose signature version for {library.unique_name}")
        return available[-1]
    if requested.version in available:
        return requested.version
    raise ValueError(
        f"Unsupported KLib signature version '{requested.version}'. "
        f"Supported versions are: {list(available)}"
    )


def render_library(library: LibraryAbi, signature_version: int) -> Iterator[str]:
    """Render a library ABI as single-target dump lines."""
    yield "// Rendering settings:"
    yield f"// - Signature version: {signature_version}"
    yield "// - Show manifest properties: true"
    yield "// - Show declarations: true"
    yield ""
    yield f"// Library unique name: <{library.unique_name}>"
    for key, value in library.manifest.items():
        yield f"// {key}: {value}"
    yield from _render_declarations(library.declarations, signature_version, 0)


def _render_declarations(declarations, signature_version: int, depth: int) -> Iterator[str]:
    indent = "    " * depth
    for declaration in declarations:
        yield indent + declaration.render(signature_version)
        yield from _render_declarations(declaration.children, signature_version, depth + 1)
        if declaration.is_class:
            yield indent + "}"


def dump_to(sink: TextIO, artifact: Union[str, Path], filters: DumpFilters = DumpFilters.DEFAULT,
            reader: Optional[AbiReader] = None) -> None:
    """Write the single-target dump of ``artifact`` to ``sink``."""
    artifact = Path(artifact)
    if not artifact.exists():
        raise FileNotFoundError(f"File does not exist: {artifact.absolute()}")
    reader = reader or create_reader()
    library = reader.read(artifact, filters.reading_filters())
    version = select_signature_version(library, filters.signature_version,
                                       reader.SUPPORTED_SIGNATURE_VERSIONS)
    for line in render_library(library, version):
        sink.write(line)
        sink.write("\n")
