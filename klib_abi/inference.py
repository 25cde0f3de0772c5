"""Inference of an ABI dump for a target the host compiler cannot build.

The target hierarchy is walked up from the unsupported target until a group
containing at least one supported target is found. Declarations common to
all supported targets of that group are taken as the ABI the unsupported
target most likely shares with them. If the project already has a merged
dump, declarations it recorded specifically for the unsupported target are
spliced on top.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, FrozenSet, Mapping, Optional, TextIO, Union

from .dumpfile import DumpSource
from .errors import InferenceError
from .hierarchy import DEFAULT_HIERARCHY, TargetHierarchy
from .merger import AbiDumpMerger, DumpFormat

logger = logging.getLogger(__name__)


@dataclass
class InferenceResult:
    target: str
    donor_targets: FrozenSet[str]
    merger: AbiDumpMerger


def find_matching_targets(unsupported_target: str, supported_targets: Collection[str],
                          hierarchy: TargetHierarchy = DEFAULT_HIERARCHY) -> FrozenSet[str]:
    """Return the supported targets closest to ``unsupported_target`` in the hierarchy.

    Raises:
        InferenceError: If no ancestor group contains a supported target
    """
    supported = frozenset(supported_targets)
    current: Optional[str] = unsupported_target
    while current is not None:
        group_targets = hierarchy.targets(current) & supported
        if group_targets:
            return group_targets
        current = hierarchy.parent(current)
    raise InferenceError(
        f"The target {unsupported_target} is not supported by the host compiler "
        f"and there are no targets similar to {unsupported_target} to infer a dump from it."
    )


def infer_unsupported_target_abi(
    unsupported_target: str,
    dumps: Mapping[str, DumpSource],
    image: Optional[Union[str, Path]] = None,
    sink: Optional[TextIO] = None,
    hierarchy: TargetHierarchy = DEFAULT_HIERARCHY,
) -> InferenceResult:
    """Infer a dump for ``unsupported_target`` from the dumps of supported targets.

    Args:
        unsupported_target: Target the dump is inferred for
        dumps: Individual dump of every supported target
        image: Previously committed merged dump; missing or empty files are ignored
        sink: If given, the inferred single-target dump is rendered into it

    Returns:
        InferenceResult with the donor targets and the merger holding the dump
    """
    matching = find_matching_targets(unsupported_target, dumps.keys(), hierarchy)

    common = AbiDumpMerger(hierarchy)
    for target in sorted(matching):
        common.add_individual_dump(target, dumps[target])
    common.retain_common_abi()

    if image is not None:
        image = Path(image)
        if image.exists():
            if image.stat().st_size > 0:
                prior = AbiDumpMerger(hierarchy)
                prior.load_merged_dump(image)
                prior.retain_target_specific_abi(unsupported_target)
                common.merge_target_specific(prior)
            else:
                logger.warning(
                    "Project's ABI file exists, but empty: %s. The file will be ignored during "
                    "ABI dump inference for the unsupported target %s", image, unsupported_target
                )

    common.override_targets({unsupported_target})
    if sink is not None:
        common.dump(sink, DumpFormat(include_targets=False))

    logger.warning(
        "An ABI dump for target %s was inferred from the ABI generated for target [%s] "
        "as the former target is not supported by the host compiler. "
        "Inferred dump may not reflect actual ABI for the target %s. "
        "It is recommended to regenerate the dump on the host supporting all required compilation targets.",
        unsupported_target, ",".join(sorted(matching)), unsupported_target,
    )
    return InferenceResult(target=unsupported_target, donor_targets=matching, merger=common)
