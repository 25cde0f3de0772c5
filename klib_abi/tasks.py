"""High-level KLib ABI operations used by the CLI.

Every operation renders into memory first, so a failure never leaves a
partially written output file behind.
"""

import difflib
import io
import logging
from pathlib import Path
from typing import Collection, List, Mapping, Optional, Union

from .aliases import can_use_group_aliases
from .filters import DumpFilters, dump_to
from .inference import InferenceResult, infer_unsupported_target_abi
from .merger import AbiDumpMerger, DumpFormat
from .readers import AbiReader

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _write(output: PathLike, text: str) -> Path:
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    return output


def build_target_dump(artifact: PathLike, output: PathLike,
                      filters: DumpFilters = DumpFilters.DEFAULT,
                      reader: Optional[AbiReader] = None) -> Path:
    """Write the single-target dump of a compiled artifact."""
    out = io.StringIO()
    dump_to(out, artifact, filters, reader)
    return _write(output, out.getvalue())


def merge_dumps(target_dumps: Mapping[str, PathLike], output: PathLike,
                group_target_names: bool = True) -> AbiDumpMerger:
    """Merge individual dumps into a multi-target dump file."""
    if not target_dumps:
        raise ValueError("KLib ABI dump/validation requires at least one enabled klib target, but none were found.")
    merger = AbiDumpMerger()
    for target in sorted(target_dumps):
        merger.add_individual_dump(target, target_dumps[target])
    fmt = DumpFormat(use_group_aliases=can_use_group_aliases(merger.targets, group_target_names))
    _write(output, merger.render(fmt))
    logger.info("Merged dumps of %d targets into %s", len(target_dumps), output)
    return merger


def infer_dump(unsupported_target: str, target_dumps: Mapping[str, PathLike],
               output: PathLike, image: Optional[PathLike] = None) -> InferenceResult:
    """Write an inferred single-target dump for ``unsupported_target``."""
    out = io.StringIO()
    result = infer_unsupported_target_abi(unsupported_target, target_dumps, image=image, sink=out)
    _write(output, out.getvalue())
    return result


def extract_supported_targets(reference: PathLike, output: PathLike,
                              supported_targets: Collection[str], strict: bool = False,
                              group_target_names: bool = True) -> Path:
    """Strip targets the host cannot build from a reference merged dump.

    Raises:
        FileNotFoundError: If the reference dump does not exist
        RuntimeError: In strict mode, if the reference has unsupported targets
    """
    reference = Path(reference)
    if not reference.exists():
        raise FileNotFoundError(
            f"Expected file with ABI declarations '{reference}' does not exist. "
            "Please ensure that ABI dump was generated and committed."
        )
    if reference.stat().st_size == 0:
        logger.warning("Reference ABI dump is empty: %s", reference)
        return _write(output, "")

    merger = AbiDumpMerger()
    merger.load_merged_dump(reference)
    unsupported = sorted(merger.targets - set(supported_targets))
    if unsupported and strict:
        raise RuntimeError(
            "Validation could not be performed as targets "
            f"[{', '.join(unsupported)}] are not supported by the host compiler "
            "and the strict validation mode was enabled."
        )
    for target in unsupported:
        logger.warning("Target %s is not supported by the host compiler, "
                       "its declarations are excluded from validation", target)
        merger.remove_target(target)

    if not merger.targets:
        logger.warning("None of the reference dump targets is supported: %s", reference)
        return _write(output, "")
    fmt = DumpFormat(use_group_aliases=can_use_group_aliases(merger.targets, group_target_names))
    return _write(output, merger.render(fmt))


def check_dump(expected: PathLike, actual: PathLike) -> List[str]:
    """Compare a generated dump with the reference, ignoring line endings.

    Returns:
        Unified diff lines; empty when the dumps match
    """
    expected = Path(expected)
    actual = Path(actual)
    if not expected.exists():
        raise FileNotFoundError(
            f"Expected file with ABI declarations '{expected}' does not exist. "
            "Please ensure that the dump task was run."
        )
    expected_lines = expected.read_text(encoding="utf-8").splitlines()
    actual_lines = actual.read_text(encoding="utf-8").splitlines()
    if expected_lines == actual_lines:
        return []
    return list(difflib.unified_diff(expected_lines, actual_lines,
                                     fromfile=str(expected), tofile=str(actual), lineterm=""))
