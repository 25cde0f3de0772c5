"""Static tree of KLib compilation targets grouped by platform family.

The tree is used for two things: compressing target lists into group aliases
when a dump is rendered, and finding the closest supported relatives of a
target the host compiler cannot build for.

    all
    ├── js, wasmJs, wasmWasi
    └── native
        ├── mingw: mingwX64
        ├── linux: linuxArm64, linuxX64, linuxArm32Hfp
        ├── androidNative: androidNativeArm32 ... androidNativeX86
        └── apple
            ├── macos, ios, tvos, watchos
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class HierarchyNode:
    """One group or leaf target of the hierarchy."""
    name: str
    parent: Optional[str]
    children: Tuple[str, ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children


# (name, children) - a bare string is a leaf
_TABLE = (
    "all", (
        "js",
        "wasmJs",
        "wasmWasi",
        ("native", (
            ("mingw", ("mingwX64",)),
            ("linux", ("linuxArm64", "linuxX64", "linuxArm32Hfp")),
            ("androidNative", (
                "androidNativeArm32",
                "androidNativeArm64",
                "androidNativeX64",
                "androidNativeX86",
            )),
            ("apple", (
                ("macos", ("macosArm64", "macosX64")),
                ("ios", ("iosArm64", "iosX64", "iosSimulatorArm64")),
                ("tvos", ("tvosArm64", "tvosX64", "tvosSimulatorArm64")),
                ("watchos", (
                    "watchosArm32",
                    "watchosArm64",
                    "watchosX64",
                    "watchosSimulatorArm64",
                    "watchosDeviceArm64",
                )),
            )),
        )),
    ),
)

# Targets that are no longer part of the tree (retired or renamed by the
# compiler) but may still show up in old projects.
_RETIRED_TARGET_PARENTS = {
    "linuxArm32": "linux",
    "linuxMips32": "linux",
    "linuxMipsel32": "linux",
    "mingwX86": "mingw",
    "iosArm32": "ios",
    "watchosX86": "watchos",
    "wasm32": "native",
    "wasm": "all",
}


class TargetHierarchy:
    """Read-only lookup structure over a fixed target tree."""

    def __init__(self, table=_TABLE, retired_parents: Optional[Dict[str, str]] = None):
        self._nodes: Dict[str, HierarchyNode] = {}
        self._depth: Dict[str, int] = {}
        self._root = self._build(table, None, 0)
        self._retired = dict(_RETIRED_TARGET_PARENTS if retired_parents is None else retired_parents)

        self._leaves: Dict[str, FrozenSet[str]] = {}
        for name in self._nodes:
            self._leaves[name] = frozenset(self._collect_leaves(name))

    def _build(self, entry, parent: Optional[str], depth: int) -> str:
        if isinstance(entry, str):
            name, children = entry, ()
        else:
            name, children = entry
        if name in self._nodes:
            raise ValueError(f"Duplicate hierarchy node: {name}")
        child_names = tuple(self._build(child, name, depth + 1) for child in children)
        self._nodes[name] = HierarchyNode(name=name, parent=parent, children=child_names)
        self._depth[name] = depth
        return name

    def _collect_leaves(self, name: str):
        node = self._nodes[name]
        if node.is_leaf:
            yield name
            return
        for child in node.children:
            yield from self._collect_leaves(child)

    @property
    def root(self) -> str:
        return self._root

    def targets(self, group_name: str) -> FrozenSet[str]:
        """Return all leaf targets under ``group_name`` (``{name}`` for a leaf).

        Unknown names yield an empty set.
        """
        return self._leaves.get(group_name, frozenset())

    def parent(self, group_name: str) -> Optional[str]:
        """Return the immediate ancestor group, or None at the root.

        Names that are not part of the tree are treated as hypothetical leaves
        and resolved through the retired-target table.
        """
        node = self._nodes.get(group_name)
        if node is not None:
            return node.parent
        return self._retired.get(group_name)

    def non_leaf_targets(self) -> FrozenSet[str]:
        return frozenset(name for name, node in self._nodes.items() if not node.is_leaf)

    def depth(self, name: str) -> int:
        return self._depth[name]

    def groups(self) -> Dict[str, FrozenSet[str]]:
        """Map every group name to its leaf targets."""
        return {name: self._leaves[name] for name in self.non_leaf_targets()}

    def __contains__(self, name: str) -> bool:
        return name in self._nodes


DEFAULT_HIERARCHY = TargetHierarchy()
