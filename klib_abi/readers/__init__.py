"""ABI readers for the KLib dump engine.

Turn a compiled artifact into a sequence of declarations:
- JSON ABI manifests extracted from a klib
"""

from .base import AbiDeclaration, AbiReader, LibraryAbi, QualifiedName
from .json_reader import JsonAbiReader
from .factory import READER_KINDS, create_reader

__all__ = [
    'AbiDeclaration',
    'AbiReader',
    'LibraryAbi',
    'QualifiedName',
    'JsonAbiReader',
    'READER_KINDS',
    'create_reader',
]
