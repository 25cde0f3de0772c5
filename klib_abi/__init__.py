"""KLib ABI dump merging, projection and inference."""

__version__ = "0.3.0"

from .errors import AbiDumpError, ConflictError, InferenceError, ParseError, RenderError
from .hierarchy import DEFAULT_HIERARCHY, TargetHierarchy
from .merger import AbiDumpMerger, DumpFormat
from .aliases import GroupAliasCompressor
from .filters import DumpFilters, SignatureVersion
from .inference import infer_unsupported_target_abi

__all__ = [
    "AbiDumpError",
    "AbiDumpMerger",
    "ConflictError",
    "DEFAULT_HIERARCHY",
    "DumpFilters",
    "DumpFormat",
    "GroupAliasCompressor",
    "InferenceError",
    "ParseError",
    "RenderError",
    "SignatureVersion",
    "TargetHierarchy",
    "infer_unsupported_target_abi",
]
