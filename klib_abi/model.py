"""In-memory representation of a (possibly multi-target) ABI dump.

Declarations live in an arena keyed by integer ids. Each node only knows its
parent id; the document keeps the ordered child lists and a
``(parent, key) -> id`` index used to find the counterpart of a declaration
when two dumps are merged.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, Set, Tuple


def opens_block(key: str) -> bool:
    """True if a declaration line opens a ``{ ... }`` block (classes)."""
    code = key.split(" // ", 1)[0].rstrip()
    return code.endswith("{")


@dataclass(frozen=True)
class DeclarationNode:
    """A single declaration and the targets it is valid for."""
    key: str
    parent: Optional[int]
    targets: FrozenSet[str]

    @property
    def opens_block(self) -> bool:
        return opens_block(self.key)


class AbiDocument:
    """Ordered declaration tree plus the set of targets contributing to it."""

    def __init__(self) -> None:
        self._nodes: Dict[int, DeclarationNode] = {}
        self._children: Dict[Optional[int], List[int]] = {None: []}
        self._index: Dict[Tuple[Optional[int], str], int] = {}
        self._next_id = 0
        self.targets: Set[str] = set()
        self.settings: List[str] = []
        self.unique_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def is_empty(self) -> bool:
        return not self.targets and not self._nodes

    def node(self, node_id: int) -> DeclarationNode:
        return self._nodes[node_id]

    def children(self, parent: Optional[int]) -> List[int]:
        return list(self._children.get(parent, ()))

    def find(self, parent: Optional[int], key: str) -> Optional[int]:
        return self._index.get((parent, key))

    def insert(self, parent: Optional[int], key: str, targets: FrozenSet[str]) -> int:
        if (parent, key) in self._index:
            raise KeyError(f"Declaration already exists: {key}")
        node_id = self._next_id
        self._next_id += 1
        self._nodes[node_id] = DeclarationNode(key=key, parent=parent, targets=frozenset(targets))
        self._children[node_id] = []
        self._children[parent].append(node_id)
        self._index[(parent, key)] = node_id
        return node_id

    def update_targets(self, node_id: int, targets: FrozenSet[str]) -> None:
        self._nodes[node_id] = replace(self._nodes[node_id], targets=frozenset(targets))

    def remove(self, node_id: int) -> None:
        """Remove a declaration together with its whole subtree."""
        for child in self.children(node_id):
            self.remove(child)
        node = self._nodes.pop(node_id)
        del self._children[node_id]
        del self._index[(node.parent, node.key)]
        self._children[node.parent].remove(node_id)

    def prune(self, should_remove: Callable[[DeclarationNode], bool]) -> int:
        """Remove, top-down, every declaration matching ``should_remove``.

        Returns the number of removed subtrees.
        """
        removed = 0
        pending = self.children(None)
        while pending:
            node_id = pending.pop()
            if should_remove(self._nodes[node_id]):
                self.remove(node_id)
                removed += 1
            else:
                pending.extend(self._children[node_id])
        return removed

    def ids(self) -> List[int]:
        return list(self._nodes)

    def walk(self, parent: Optional[int] = None, depth: int = 0) -> Iterator[Tuple[int, int]]:
        """Yield ``(node_id, depth)`` pairs in rendering (pre-)order."""
        for node_id in self._children[parent]:
            yield node_id, depth
            yield from self.walk(node_id, depth + 1)

    def path(self, node_id: int) -> Tuple[str, ...]:
        keys = []
        current: Optional[int] = node_id
        while current is not None:
            node = self._nodes[current]
            keys.append(node.key)
            current = node.parent
        return tuple(reversed(keys))

    def declarations(self) -> Dict[Tuple[str, ...], FrozenSet[str]]:
        """Flatten the tree into ``{declaration path: targets}``."""
        return {self.path(node_id): self._nodes[node_id].targets for node_id, _ in self.walk()}
