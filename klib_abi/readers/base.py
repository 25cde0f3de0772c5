"""Base interface for ABI readers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class QualifiedName:
    """Declaration name split into package and package-relative parts.

    Rendered as ``org.example/Outer.Inner``.
    """
    package: str
    relative_name: str

    @classmethod
    def parse(cls, name: str) -> "QualifiedName":
        package, sep, relative = name.partition("/")
        if not sep:
            return cls("", name)
        return cls(package, relative)

    def __str__(self) -> str:
        return f"{self.package}/{self.relative_name}"


@dataclass(frozen=True)
class AbiDeclaration:
    """One declaration read from a compiled library."""
    kind: str
    qualified_name: QualifiedName
    text: str
    signatures: Dict[int, str] = field(default_factory=dict, hash=False)
    annotations: FrozenSet[QualifiedName] = frozenset()
    children: Tuple["AbiDeclaration", ...] = ()

    @property
    def is_class(self) -> bool:
        return self.kind == "class"

    def render(self, signature_version: int) -> str:
        line = self.text
        if self.is_class:
            line += " {"
        signature = self.signatures.get(signature_version)
        if signature:
            line += f" // {signature}"
        return line


@dataclass
class LibraryAbi:
    """ABI of a single compiled library for one target."""
    unique_name: str
    signature_versions: Tuple[int, ...] = ()
    manifest: Dict[str, str] = field(default_factory=dict)
    declarations: Tuple[AbiDeclaration, ...] = ()


class AbiReader(ABC):
    """Abstract base class for ABI readers.

    Each reader turns one kind of compiled artifact into a :class:`LibraryAbi`.
    Filters passed to :meth:`read` are objects with an
    ``excludes(declaration) -> bool`` method, applied in the given order.
    """

    SUPPORTED_SIGNATURE_VERSIONS: FrozenSet[int] = frozenset({1, 2})

    @abstractmethod
    def read(self, artifact: Path, reading_filters: Sequence = ()) -> LibraryAbi:
        """Read the ABI of ``artifact``.

        Args:
            artifact: Path to the compiled artifact
            reading_filters: Exclusion predicates

        Returns:
            LibraryAbi without the excluded declarations

        Raises:
            ParseError: If the artifact cannot be understood
        """
        pass

    @staticmethod
    def apply_filters(declarations: Iterable[AbiDeclaration],
                      reading_filters: Sequence) -> Tuple[AbiDeclaration, ...]:
        """Drop excluded declarations (with everything nested in them)."""
        kept = []
        for declaration in declarations:
            if any(f.excludes(declaration) for f in reading_filters):
                continue
            children = AbiReader.apply_filters(declaration.children, reading_filters)
            kept.append(replace(declaration, children=children))
        return tuple(kept)


def find_signature_versions(library: LibraryAbi,
                            supported: Optional[Iterable[int]] = None) -> Tuple[int, ...]:
    """Signature versions present in ``library`` that the reader can render."""
    supported = set(AbiReader.SUPPORTED_SIGNATURE_VERSIONS if supported is None else supported)
    return tuple(sorted(v for v in set(library.signature_versions) if v in supported))
