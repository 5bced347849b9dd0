"""Tests for fingerprints and content sources."""

import json
import os
from pathlib import Path

import pytest

from flx.builder.exceptions import FingerprintError
from flx.builder.models import (
    BytesContent,
    FileContent,
    FileStamp,
    Fingerprint,
    StringContent,
)


@pytest.fixture
def inputs(tmp_path: Path) -> list[str]:
    a = tmp_path / "a.dart"
    b = tmp_path / "b.dart"
    a.write_text("library a;")
    b.write_text("library b;")
    return [str(a), str(b)]


def test_fingerprint_is_reflexive(inputs: list[str]) -> None:
    props = {"entryPoint": "lib/main.dart"}
    assert Fingerprint.from_inputs(props, inputs) == Fingerprint.from_inputs(props, inputs)


def test_fingerprint_ignores_ordering(inputs: list[str]) -> None:
    first = Fingerprint.from_inputs({"a": "1", "b": "2"}, inputs)
    second = Fingerprint.from_inputs({"b": "2", "a": "1"}, list(reversed(inputs)))
    assert first == second


def test_fingerprint_changes_with_content(inputs: list[str]) -> None:
    before = Fingerprint.from_inputs({}, inputs)
    Path(inputs[0]).write_text("library a; // edited")
    assert Fingerprint.from_inputs({}, inputs) != before


def test_fingerprint_changes_with_properties(inputs: list[str]) -> None:
    assert Fingerprint.from_inputs({"entryPoint": "a"}, inputs) != Fingerprint.from_inputs(
        {"entryPoint": "b"}, inputs
    )


def test_fingerprint_ignores_mtime_only_changes(inputs: list[str]) -> None:
    before = Fingerprint.from_inputs({}, inputs)
    os.utime(inputs[0], ns=(1_000_000_000, 1_000_000_000))
    after = Fingerprint.from_inputs({}, inputs)
    assert after.files[inputs[0]].mtime_ns != before.files[inputs[0]].mtime_ns
    assert after == before


def test_fingerprint_missing_input_is_an_error(tmp_path: Path, inputs: list[str]) -> None:
    missing = str(tmp_path / "gone.dart")
    with pytest.raises(FingerprintError, match="Missing input files"):
        Fingerprint.from_inputs({}, inputs + [missing])


def test_fingerprint_json_round_trip(inputs: list[str]) -> None:
    fingerprint = Fingerprint.from_inputs({"entryPoint": "lib/main.dart"}, inputs)
    restored = Fingerprint.from_json(fingerprint.to_json())
    assert restored == fingerprint
    assert restored.files[inputs[0]].mtime_ns == fingerprint.files[inputs[0]].mtime_ns


def test_fingerprint_is_immutable(inputs: list[str]) -> None:
    fingerprint = Fingerprint.from_inputs({"k": "v"}, inputs)
    with pytest.raises(TypeError):
        fingerprint.properties["k"] = "other"  # type: ignore[index]


@pytest.mark.parametrize(
    "payload, message",
    [
        ("not json", "not valid JSON"),
        ("[]", "must be a JSON object"),
        (json.dumps({"version": "0.0.0-other"}), "Incompatible fingerprint version"),
    ],
)
def test_fingerprint_from_json_rejects_bad_data(payload: str, message: str) -> None:
    with pytest.raises(FingerprintError, match=message):
        Fingerprint.from_json(payload)


def test_fingerprint_from_json_rejects_malformed_files(inputs: list[str]) -> None:
    data = json.loads(Fingerprint.from_inputs({}, inputs).to_json())
    data["files"][inputs[0]] = {"size": 1}
    with pytest.raises(FingerprintError, match="Malformed fingerprint data"):
        Fingerprint.from_json(json.dumps(data))


def test_file_stamp_records_size_and_hash(tmp_path: Path) -> None:
    f = tmp_path / "data.bin"
    f.write_bytes(b"12345")
    stamp = FileStamp.of(f)
    assert stamp.size == 5
    assert len(stamp.content_hash) == 64


def test_content_sources(tmp_path: Path) -> None:
    (tmp_path / "asset.txt").write_text("from disk")
    relative = FileContent("asset.txt")

    assert relative.read_bytes(tmp_path) == b"from disk"
    assert relative.file_dependencies == frozenset({"asset.txt"})
    assert FileContent(tmp_path / "asset.txt", {"extra"}).file_dependencies == frozenset(
        {str(tmp_path / "asset.txt"), "extra"}
    )
    assert BytesContent(b"raw").read_bytes() == b"raw"
    assert StringContent("text", ["dep"]).file_dependencies == frozenset({"dep"})
    assert StringContent("héllo").read_bytes() == "héllo".encode("utf-8")
