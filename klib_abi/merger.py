"""Merging, projection and rendering of multi-target KLib ABI dumps."""

import io
import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List, Optional, Set, TextIO

from .aliases import GroupAliasCompressor, can_use_group_aliases
from .dumpfile import (
    ALIAS_HEADER_PREFIX,
    INDENT,
    MERGED_DUMP_MARKER,
    TARGETS_HEADER_PREFIX,
    TARGETS_SUFFIX,
    UNIQUE_NAME_PREFIX,
    DumpSource,
    ParsedDeclaration,
    ParsedDump,
    format_target_list,
    parse_dump,
    read_lines,
)
from .errors import ConflictError, ParseError, RenderError
from .hierarchy import DEFAULT_HIERARCHY, TargetHierarchy
from .model import AbiDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DumpFormat:
    """Rendering options for :meth:`AbiDumpMerger.dump`.

    include_targets:   annotate declarations with their targets; may only be
                       disabled for a single-target document.
    use_group_aliases: print hierarchy group names instead of target lists
                       where possible.
    """
    include_targets: bool = True
    use_group_aliases: bool = False


class AbiDumpMerger:
    """Builds a multi-target ABI document out of individual or merged dumps."""

    def __init__(self, hierarchy: TargetHierarchy = DEFAULT_HIERARCHY):
        self.hierarchy = hierarchy
        self.document = AbiDocument()
        # Whether declarations carried explicit target annotations on load
        self.loaded_with_targets = False
        # Loaded documents do not accept individual dumps
        self._loaded = False

    @property
    def targets(self) -> FrozenSet[str]:
        return frozenset(self.document.targets)

    # -- populating ---------------------------------------------------------

    def add_individual_dump(self, target: str, source: DumpSource) -> None:
        """Merge a single-target dump into the document.

        Raises:
            ParseError: if ``source`` is malformed or is a merged dump
            ConflictError: if ``target`` was already added, a declaration is
                repeated within the dump, or the dump header disagrees with
                previously added dumps
            RuntimeError: if the merger holds a loaded merged dump

        The dump is checked as a whole before the document is touched, so a
        failed add leaves the merger as it was.
        """
        if self._loaded:
            raise RuntimeError("Individual dumps cannot be added to a merger holding a loaded merged dump")
        if target in self.document.targets:
            raise ConflictError(f"Target {target} was already added to the dump")

        dump = parse_dump(read_lines(source))
        if dump.merged or dump.targets is not None:
            raise ParseError(f"Expected a single-target dump for {target}, got a merged dump")
        self._check_individual(dump.declarations)
        self._merge_header(dump, target)

        self.document.targets.add(target)
        for declaration in dump.declarations:
            self._add(None, declaration, target)
        logger.debug("Added dump for %s (%d declarations total)", target, len(self.document))

    def _merge_header(self, dump: ParsedDump, target: str) -> None:
        doc = self.document
        if not doc.targets:
            doc.settings = list(dump.settings)
            doc.unique_name = dump.unique_name
            return
        if dump.unique_name != doc.unique_name:
            raise ConflictError(
                f"Library unique name of the {target} dump ({dump.unique_name}) "
                f"differs from the merged one ({doc.unique_name})"
            )
        if dump.settings != doc.settings:
            raise ConflictError(
                f"Rendering settings of the {target} dump differ from the merged ones: "
                f"{dump.settings} != {doc.settings}"
            )

    def _check_individual(self, declarations: List[ParsedDeclaration]) -> None:
        seen: Set[str] = set()
        for declaration in declarations:
            if declaration.targets is not None:
                raise ParseError("Unexpected target annotation in a single-target dump",
                                 declaration.line_number)
            if declaration.key in seen:
                raise ConflictError(f"Duplicate declaration: {declaration.key}",
                                    declaration.line_number)
            seen.add(declaration.key)
            self._check_individual(declaration.children)

    def _add(self, parent: Optional[int], declaration: ParsedDeclaration, target: str) -> None:
        doc = self.document
        node_id = doc.find(parent, declaration.key)
        if node_id is None:
            node_id = doc.insert(parent, declaration.key, frozenset([target]))
        else:
            doc.update_targets(node_id, doc.node(node_id).targets | {target})
        for child in declaration.children:
            self._add(node_id, child, target)

    def load_merged_dump(self, source: DumpSource) -> None:
        """Load a previously rendered merged dump into an empty document.

        Group aliases are expanded through the target hierarchy. The document
        is replaced only once the whole dump has been read.
        """
        if not self.document.is_empty():
            raise RuntimeError("A merged dump can only be loaded into an empty merger")

        dump = parse_dump(read_lines(source))
        if not dump.merged:
            raise ParseError(f"Not a merged dump: '{MERGED_DUMP_MARKER}' header is missing")
        if not dump.targets:
            raise ParseError("Merged dump does not declare its targets")

        known = frozenset(dump.targets)
        self._check_aliases(dump)

        doc = AbiDocument()
        doc.targets = set(known)
        doc.settings = list(dump.settings)
        doc.unique_name = dump.unique_name
        for declaration in dump.declarations:
            self._load(doc, None, declaration, known, known)

        self.document = doc
        self._loaded = True
        self.loaded_with_targets = dump.has_target_annotations()
        logger.debug("Loaded merged dump for %d targets (%d declarations)", len(known), len(doc))

    def _check_aliases(self, dump: ParsedDump) -> None:
        groups = self.hierarchy.non_leaf_targets()
        for name, leaves in dump.aliases.items():
            if name not in groups:
                raise ParseError(f"Unknown alias: {name}")
            if frozenset(leaves) != self.hierarchy.targets(name):
                raise ParseError(
                    f"Alias {name} => {format_target_list(leaves)} does not match the target hierarchy"
                )

    def _resolve(self, names, known: FrozenSet[str], line_number: int) -> FrozenSet[str]:
        groups = self.hierarchy.non_leaf_targets()
        result: Set[str] = set()
        for name in names:
            if name in known:
                result.add(name)
            elif name in groups:
                leaves = self.hierarchy.targets(name)
                missing = leaves - known
                if missing:
                    raise ParseError(
                        f"Alias {name} refers to targets absent from the dump: "
                        f"{format_target_list(sorted(missing))}",
                        line_number,
                    )
                result |= leaves
            else:
                raise ParseError(f"Unknown target or alias: {name}", line_number)
        return frozenset(result)

    def _load(self, doc: AbiDocument, parent: Optional[int], declaration: ParsedDeclaration,
              parent_targets: FrozenSet[str], known: FrozenSet[str]) -> None:
        if declaration.targets is None:
            targets = parent_targets
        else:
            targets = self._resolve(declaration.targets, known, declaration.line_number)
        if not targets <= parent_targets:
            raise ParseError("Declaration targets are not a subset of the enclosing declaration targets",
                             declaration.line_number)
        if doc.find(parent, declaration.key) is not None:
            raise ConflictError(f"Duplicate declaration: {declaration.key}", declaration.line_number)
        node_id = doc.insert(parent, declaration.key, targets)
        for child in declaration.children:
            self._load(doc, node_id, child, targets, known)

    # -- projections --------------------------------------------------------

    def retain_common_abi(self) -> None:
        """Keep only declarations present for every target of the document."""
        full = frozenset(self.document.targets)
        removed = self.document.prune(lambda node: node.targets != full)
        logger.debug("Retained common ABI of %d targets, %d subtrees removed", len(full), removed)

    def retain_target_specific_abi(self, target: str) -> None:
        """Keep only declarations specific to ``target``, relabelled to it alone.

        Declarations shared by every target are kept only as containers of
        target-specific members.
        """
        doc = self.document
        full = frozenset(doc.targets)
        single = frozenset([target])
        if target not in full:
            logger.debug("Target %s is absent from the dump, nothing specific to retain", target)

        def retain(node_id: int) -> bool:
            node = doc.node(node_id)
            if target not in node.targets:
                doc.remove(node_id)
                return False
            kept = [child for child in doc.children(node_id) if retain(child)]
            if node.targets == full and not kept:
                doc.remove(node_id)
                return False
            doc.update_targets(node_id, single)
            return True

        for node_id in doc.children(None):
            retain(node_id)
        doc.targets = set(single)

    def remove_target(self, target: str) -> None:
        """Drop ``target`` from the document, pruning declarations left without targets."""
        doc = self.document
        if target not in doc.targets:
            return

        def strip(node_id: int) -> None:
            remaining = doc.node(node_id).targets - {target}
            if not remaining:
                doc.remove(node_id)
                return
            doc.update_targets(node_id, remaining)
            for child in doc.children(node_id):
                strip(child)

        for node_id in doc.children(None):
            strip(node_id)
        doc.targets.discard(target)

    # -- combining ----------------------------------------------------------

    def merge_target_specific(self, other: "AbiDumpMerger") -> None:
        """Splice a single-target document on top of this one."""
        if len(other.targets) != 1:
            raise ValueError(
                f"Expected a dump reduced to a single target, got {format_target_list(sorted(other.targets))}"
            )
        doc = self.document
        source = other.document

        def merge(source_parent: Optional[int], parent: Optional[int]) -> None:
            for source_id in source.children(source_parent):
                node = source.node(source_id)
                node_id = doc.find(parent, node.key)
                if node_id is None:
                    node_id = doc.insert(parent, node.key, node.targets)
                else:
                    doc.update_targets(node_id, doc.node(node_id).targets | node.targets)
                merge(source_id, node_id)

        merge(None, None)
        doc.targets |= other.targets

    def override_targets(self, new_targets: Iterable[str]) -> None:
        """Attribute every declaration to ``new_targets``, whatever it had before."""
        new_targets = frozenset(new_targets)
        if not new_targets:
            raise ValueError("Targets set must not be empty")
        doc = self.document
        for node_id in doc.ids():
            doc.update_targets(node_id, new_targets)
        doc.targets = set(new_targets)

    # -- rendering ----------------------------------------------------------

    def dump(self, sink: TextIO, fmt: DumpFormat = DumpFormat()) -> None:
        """Render the document as text into ``sink``."""
        for line in self._render(fmt):
            sink.write(line)
            sink.write("\n")

    def render(self, fmt: DumpFormat = DumpFormat()) -> str:
        out = io.StringIO()
        self.dump(out, fmt)
        return out.getvalue()

    def _render(self, fmt: DumpFormat) -> Iterator[str]:
        doc = self.document
        if not doc.targets:
            raise RenderError("Nothing to render: no dumps were added")
        if not fmt.include_targets and len(doc.targets) != 1:
            raise RenderError(
                "Targets can only be omitted from a single-target dump, this one has "
                f"{format_target_list(sorted(doc.targets))}"
            )

        compressor = None
        if fmt.include_targets and fmt.use_group_aliases \
                and can_use_group_aliases(doc.targets, hierarchy=self.hierarchy):
            compressor = GroupAliasCompressor(self.hierarchy)

        used_aliases: Set[str] = set()
        body = list(self._render_body(fmt.include_targets, compressor, used_aliases))

        header: List[str] = []
        if fmt.include_targets:
            header.append(MERGED_DUMP_MARKER)
            header.append(TARGETS_HEADER_PREFIX + format_target_list(sorted(doc.targets)))
            for alias in sorted(used_aliases):
                leaves = sorted(self.hierarchy.targets(alias))
                header.append(f"{ALIAS_HEADER_PREFIX}{alias} => {format_target_list(leaves)}")
        header.extend(doc.settings)

        yield from header
        if header and (doc.unique_name is not None or body):
            yield ""
        if doc.unique_name is not None:
            yield UNIQUE_NAME_PREFIX + doc.unique_name
        yield from body

    def _render_body(self, include_targets: bool, compressor: Optional[GroupAliasCompressor],
                     used_aliases: Set[str], parent: Optional[int] = None,
                     depth: int = 0) -> Iterator[str]:
        doc = self.document
        groups = self.hierarchy.non_leaf_targets()
        for node_id in doc.children(parent):
            node = doc.node(node_id)
            line = INDENT * depth + node.key
            if include_targets:
                if compressor is not None:
                    tokens = compressor.compress(node.targets)
                    used_aliases.update(token for token in tokens if token in groups)
                else:
                    tokens = sorted(node.targets)
                line += TARGETS_SUFFIX + format_target_list(tokens)
            yield line
            yield from self._render_body(include_targets, compressor, used_aliases,
                                         node_id, depth + 1)
            if node.opens_block:
                yield INDENT * depth + "}"
