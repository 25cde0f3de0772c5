"""Shared fixtures for dump tests."""

import io

import pytest

SETTINGS = [
    "// Rendering settings:",
    "// - Signature version: 2",
    "// - Show manifest properties: true",
    "// - Show declarations: true",
]

FOO = "final class org.example/Foo { // org.example/Foo|null[0]"
BAR = "final fun bar(): kotlin/Int // org.example/Foo.bar|bar(){}[0]"
BAZ = "final fun baz(): kotlin/Int // org.example/Foo.baz|baz(){}[0]"


def single_dump(*body, unique_name="testproject", platform="NATIVE"):
    """Text of a single-target dump with the standard header."""
    lines = SETTINGS + ["", f"// Library unique name: <{unique_name}>", f"// Platform: {platform}"]
    return "\n".join(lines + list(body)) + "\n"


def foo_dump(*members):
    return single_dump(FOO, *("    " + m for m in members), "}")


@pytest.fixture
def foo_dumps():
    """linux targets have Foo.bar, mingwX64 additionally has Foo.baz."""
    return {
        "linuxArm64": foo_dump(BAR),
        "linuxX64": foo_dump(BAR),
        "mingwX64": foo_dump(BAR, BAZ),
    }


@pytest.fixture
def write_dumps(tmp_path):
    """Write ``{target: text}`` to files, returning ``{target: path}``."""
    def write(dumps):
        paths = {}
        for target, text in dumps.items():
            path = tmp_path / target / "testproject.klib.api"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
            paths[target] = path
        return paths
    return write


def stream(text):
    return io.StringIO(text)
