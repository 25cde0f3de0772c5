"""Factory for creating ABI readers by artifact kind."""

from .base import AbiReader
from .json_reader import JsonAbiReader

READER_KINDS = ("json",)


def create_reader(kind: str = "json") -> AbiReader:
    """Create the AbiReader implementation for an artifact kind.

    Mapping:
    - json -> JsonAbiReader (ABI manifest extracted from a klib)
    """
    if kind == "json":
        return JsonAbiReader()

    raise ValueError(f"Unsupported ABI reader: {kind}")
