"""Reading of textual KLib ABI dumps.

Single-target dump::

    // Rendering settings:
    // - Signature version: 2
    // - Show manifest properties: true
    // - Show declarations: true

    // Library unique name: <testproject>
    // Platform: NATIVE
    final class org.example/Foo { // org.example/Foo|null[0]
        final fun bar(): kotlin/Int // org.example/Foo.bar|bar(){}[0]
    }

A merged dump starts with ``// Klib ABI Dump`` and ``// Targets: [...]``,
may define ``// Alias: group => [...]`` lines, and every declaration line ends
with `` // Targets: [...]``.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Tuple, Union

from .errors import ParseError
from .model import opens_block

MERGED_DUMP_MARKER = "// Klib ABI Dump"
TARGETS_HEADER_PREFIX = "// Targets: "
ALIAS_HEADER_PREFIX = "// Alias: "
SETTINGS_HEADER = "// Rendering settings:"
SETTING_PREFIX = "// - "
UNIQUE_NAME_PREFIX = "// Library unique name: "
TARGETS_SUFFIX = " // Targets: "
INDENT = "    "

DumpSource = Union[str, Path, TextIO]


@dataclass
class ParsedDeclaration:
    key: str
    line_number: int
    targets: Optional[Tuple[str, ...]] = None
    children: List["ParsedDeclaration"] = field(default_factory=list)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class ParsedDump:
    merged: bool = False
    targets: Optional[Tuple[str, ...]] = None
    aliases: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    settings: List[str] = field(default_factory=list)
    unique_name: Optional[str] = None
    manifest: Dict[str, str] = field(default_factory=dict)
    declarations: List[ParsedDeclaration] = field(default_factory=list)

    def has_target_annotations(self) -> bool:
        return any(d.targets is not None for top in self.declarations for d in top.walk())


@dataclass
class _Frame:
    depth: int
    declaration: ParsedDeclaration
    is_block: bool


def read_lines(source: DumpSource) -> List[str]:
    """Read a dump from a path or a text stream, ignoring line-ending style."""
    if isinstance(source, (str, Path)):
        text = Path(source).read_text(encoding="utf-8")
    else:
        text = source.read()
    return text.splitlines()


def parse_target_list(text: str, line_number: int = 0) -> Tuple[str, ...]:
    """Parse ``[a, b, c]`` into a tuple of names."""
    text = text.strip()
    if not (text.startswith("[") and text.endswith("]")):
        raise ParseError(f"Malformed target list: {text!r}", line_number)
    names = tuple(name.strip() for name in text[1:-1].split(","))
    if not names or any(not name for name in names):
        raise ParseError(f"Empty name in target list: {text!r}", line_number)
    return names


def format_target_list(names) -> str:
    return "[" + ", ".join(names) + "]"


def _parse_header_line(dump: ParsedDump, line: str, line_number: int) -> None:
    if line == MERGED_DUMP_MARKER:
        dump.merged = True
    elif line.startswith(TARGETS_HEADER_PREFIX):
        dump.targets = parse_target_list(line[len(TARGETS_HEADER_PREFIX):], line_number)
    elif line.startswith(ALIAS_HEADER_PREFIX):
        name, sep, targets = line[len(ALIAS_HEADER_PREFIX):].partition(" => ")
        if not sep or not name.strip():
            raise ParseError(f"Malformed alias definition: {line!r}", line_number)
        dump.aliases[name.strip()] = parse_target_list(targets, line_number)
    elif line == SETTINGS_HEADER or line.startswith(SETTING_PREFIX):
        dump.settings.append(line)
    elif line.startswith(UNIQUE_NAME_PREFIX):
        dump.unique_name = line[len(UNIQUE_NAME_PREFIX):].strip()
    else:
        # Manifest properties (platform, compiler version, ...) are per-target
        key, sep, value = line[2:].partition(":")
        if sep:
            dump.manifest[key.strip()] = value.strip()


def _split_targets(text: str, line_number: int) -> Tuple[str, Optional[Tuple[str, ...]]]:
    idx = text.rfind(TARGETS_SUFFIX + "[")
    if idx == -1:
        return text, None
    key = text[:idx].rstrip()
    if not key:
        raise ParseError("Declaration without signature", line_number)
    return key, parse_target_list(text[idx + len(TARGETS_SUFFIX):], line_number)


def _unwind(stack: List[_Frame], depth: int) -> None:
    """Pop every frame at ``depth`` or deeper; open blocks must not be popped."""
    while stack and stack[-1].depth >= depth:
        frame = stack.pop()
        if frame.is_block:
            raise ParseError(
                f"Unbalanced nesting: missing '}}' for {frame.declaration.key!r}",
                frame.declaration.line_number,
            )


def parse_dump(lines: List[str]) -> ParsedDump:
    """Parse dump lines into a header and a declaration tree."""
    dump = ParsedDump()

    pos = 0
    while pos < len(lines):
        stripped = lines[pos].strip()
        if stripped and not stripped.startswith("//"):
            break
        if stripped:
            _parse_header_line(dump, stripped, pos + 1)
        pos += 1

    stack: List[_Frame] = []
    for line_number, raw in enumerate(lines[pos:], start=pos + 1):
        text = raw.strip()
        if not text:
            continue
        leading = raw[:len(raw) - len(raw.lstrip())]
        if leading.strip(" "):
            raise ParseError("Indentation must use spaces", line_number)
        if len(leading) % len(INDENT):
            raise ParseError(f"Indentation is not a multiple of {len(INDENT)}", line_number)
        depth = len(leading) // len(INDENT)

        if text == "}":
            _unwind(stack, depth + 1)
            if not stack or stack[-1].depth != depth or not stack[-1].is_block:
                raise ParseError("Unbalanced nesting: unexpected '}'", line_number)
            stack.pop()
            continue
        if text.startswith("//"):
            raise ParseError(f"Unexpected comment in declarations: {text!r}", line_number)

        _unwind(stack, depth)
        expected = stack[-1].depth + 1 if stack else 0
        if depth != expected:
            raise ParseError(f"Unexpected indentation (expected level {expected})", line_number)

        key, targets = _split_targets(text, line_number)
        declaration = ParsedDeclaration(key=key, line_number=line_number, targets=targets)
        siblings = stack[-1].declaration.children if stack else dump.declarations
        siblings.append(declaration)
        stack.append(_Frame(depth, declaration, opens_block(key)))

    _unwind(stack, 0)
    return dump
