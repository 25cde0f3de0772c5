"""ABI reader for JSON manifests extracted from compiled KLibs."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Sequence

from ..errors import ParseError
from .base import AbiDeclaration, AbiReader, LibraryAbi, QualifiedName

logger = logging.getLogger(__name__)


class JsonAbiReader(AbiReader):
    """Reads the JSON description of a library ABI.

    Expected layout::

        {
          "uniqueName": "testproject",
          "signatureVersions": [1, 2],
          "manifest": {"Platform": "NATIVE", "Native targets": "linux_x64"},
          "declarations": [
            {"kind": "class", "package": "org.example", "name": "Foo",
             "text": "final class org.example/Foo",
             "signatures": {"2": "org.example/Foo|null[0]"},
             "annotations": ["org.example/Marker"],
             "children": [...]}
          ]
        }
    """

    def read(self, artifact: Path, reading_filters: Sequence = ()) -> LibraryAbi:
        artifact = Path(artifact)
        try:
            data = json.loads(artifact.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ParseError(f"Invalid ABI manifest {artifact}: {exc}") from exc

        try:
            declarations = tuple(self._declaration(item) for item in data.get("declarations", []))
            library = LibraryAbi(
                unique_name=data["uniqueName"],
                signature_versions=tuple(int(v) for v in data.get("signatureVersions", [])),
                manifest={str(k): str(v) for k, v in data.get("manifest", {}).items()},
                declarations=self.apply_filters(declarations, reading_filters),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ParseError(f"Malformed ABI manifest {artifact}: {exc!r}") from exc

        logger.debug("Read %d top-level declarations from %s", len(library.declarations), artifact)
        return library

    def _declaration(self, item: Dict[str, Any]) -> AbiDeclaration:
        return AbiDeclaration(
            kind=item["kind"],
            qualified_name=QualifiedName(item.get("package", ""), item["name"]),
            text=item["text"],
            signatures={int(k): v for k, v in item.get("signatures", {}).items()},
            annotations=frozenset(QualifiedName.parse(a) for a in item.get("annotations", [])),
            children=tuple(self._declaration(child) for child in item.get("children", [])),
        )
