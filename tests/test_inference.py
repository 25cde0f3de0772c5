"""Tests for inference of dumps for unsupported targets."""

import io
import logging

import pytest

from conftest import BAR, BAZ, FOO, SETTINGS, foo_dump, stream
from klib_abi.errors import InferenceError
from klib_abi.inference import find_matching_targets, infer_unsupported_target_abi

QUX = "final fun qux(): kotlin/Int // org.example/Foo.qux|qux(){}[0]"
ARM32 = "final fun arm32(): kotlin/Int // org.example/Foo.arm32|arm32(){}[0]"


@pytest.fixture
def supported_dumps():
    return {
        "linuxArm64": foo_dump(BAR),
        "linuxX64": foo_dump(BAR, QUX),
        "mingwX64": foo_dump(BAR, BAZ),
    }


def sources(dumps):
    return {target: stream(text) for target, text in dumps.items()}


def test_find_matching_targets():
    supported = {"linuxArm64", "linuxX64", "mingwX64", "js"}
    assert find_matching_targets("linuxArm32", supported) == {"linuxArm64", "linuxX64"}
    assert find_matching_targets("linuxArm32Hfp", supported) == {"linuxArm64", "linuxX64"}
    assert find_matching_targets("mingwX86", supported) == {"mingwX64"}
    assert find_matching_targets("iosArm64", supported) == {"linuxArm64", "linuxX64", "mingwX64"}
    assert find_matching_targets("wasmJs", supported) == supported


def test_find_matching_targets_without_relatives():
    with pytest.raises(InferenceError, match="no targets similar to linuxArm64"):
        find_matching_targets("linuxArm64", {"customTarget"})
    with pytest.raises(InferenceError):
        find_matching_targets("madeUpTarget", {"linuxX64"})


def test_infer_from_linux_relatives(supported_dumps, caplog):
    sink = io.StringIO()
    with caplog.at_level(logging.WARNING, logger="klib_abi.inference"):
        result = infer_unsupported_target_abi("linuxArm32", sources(supported_dumps), sink=sink)

    assert result.target == "linuxArm32"
    assert result.donor_targets == {"linuxArm64", "linuxX64"}
    assert result.merger.targets == {"linuxArm32"}
    assert result.merger.document.declarations() == {
        (FOO,): {"linuxArm32"},
        (FOO, BAR): {"linuxArm32"},
    }
    assert sink.getvalue() == "\n".join([
        *SETTINGS,
        "",
        "// Library unique name: <testproject>",
        FOO,
        "    " + BAR,
        "}",
    ]) + "\n"
    assert "An ABI dump for target linuxArm32 was inferred" in caplog.text
    assert "[linuxArm64,linuxX64]" in caplog.text


def test_infer_splices_prior_image(supported_dumps, tmp_path):
    image = tmp_path / "testproject.klib.api"
    image.write_text("\n".join([
        "// Klib ABI Dump",
        "// Targets: [linuxArm32, linuxArm64, linuxX64]",
        "// Library unique name: <testproject>",
        FOO + " // Targets: [linuxArm32, linuxArm64, linuxX64]",
        "    " + BAR + " // Targets: [linuxArm32, linuxArm64, linuxX64]",
        "    " + ARM32 + " // Targets: [linuxArm32]",
        "    " + QUX + " // Targets: [linuxX64]",
        "}",
    ]) + "\n")

    result = infer_unsupported_target_abi("linuxArm32", sources(supported_dumps), image=image)

    assert result.merger.document.declarations() == {
        (FOO,): {"linuxArm32"},
        (FOO, BAR): {"linuxArm32"},
        (FOO, ARM32): {"linuxArm32"},
    }


def test_infer_ignores_missing_image(supported_dumps, tmp_path):
    result = infer_unsupported_target_abi("linuxArm32", sources(supported_dumps),
                                          image=tmp_path / "missing.klib.api")
    assert len(result.merger.document) == 2


def test_infer_warns_about_empty_image(supported_dumps, tmp_path, caplog):
    image = tmp_path / "empty.klib.api"
    image.write_text("")

    with caplog.at_level(logging.WARNING, logger="klib_abi.inference"):
        result = infer_unsupported_target_abi("linuxArm32", sources(supported_dumps), image=image)

    assert "exists, but empty" in caplog.text
    assert len(result.merger.document) == 2


def test_infer_without_relatives_fails(supported_dumps):
    with pytest.raises(InferenceError):
        infer_unsupported_target_abi("linuxArm32", {"customTarget": stream(foo_dump(BAR))})
