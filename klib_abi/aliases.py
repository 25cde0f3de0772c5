"""Compression of target lists into hierarchy group aliases."""

import logging
from typing import FrozenSet, Iterable, List

from .hierarchy import DEFAULT_HIERARCHY, TargetHierarchy

logger = logging.getLogger(__name__)


class GroupAliasCompressor:
    """Replace target subsets by the names of the hierarchy groups covering them.

    Groups are tried largest first (deepest first among groups with the same
    number of leaves); a group is taken when all of its leaves are still
    uncovered. Whatever is left is emitted as plain target names.

    Leaf count comes before depth: tried deepest first, the full leaf set of
    ``apple`` or ``native`` would be split into its subgroups instead of
    rendering as the single group name.
    """

    def __init__(self, hierarchy: TargetHierarchy = DEFAULT_HIERARCHY):
        self.hierarchy = hierarchy
        self._candidates = sorted(
            hierarchy.groups().items(),
            key=lambda item: (-len(item[1]), -hierarchy.depth(item[0]), item[0]),
        )

    def compress(self, targets: Iterable[str]) -> List[str]:
        remaining = set(targets)
        tokens = []
        for name, leaves in self._candidates:
            if not remaining:
                break
            if leaves and leaves <= remaining:
                tokens.append(name)
                remaining -= leaves
        tokens.extend(remaining)
        return sorted(tokens)

    def expand(self, tokens: Iterable[str]) -> FrozenSet[str]:
        groups = self.hierarchy.non_leaf_targets()
        result = set()
        for token in tokens:
            if token in groups:
                result |= self.hierarchy.targets(token)
            else:
                result.add(token)
        return frozenset(result)


def can_use_group_aliases(targets: Iterable[str], enabled: bool = True,
                          hierarchy: TargetHierarchy = DEFAULT_HIERARCHY) -> bool:
    """Aliases are unusable when a real target is named like a group."""
    if not enabled:
        return False
    clashing = set(targets) & hierarchy.non_leaf_targets()
    if clashing:
        logger.debug("Group aliases disabled, targets clash with group names: %s",
                     ", ".join(sorted(clashing)))
        return False
    return True
