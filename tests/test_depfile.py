"""Tests for depfile parsing and writing."""

from pathlib import Path

from flx.builder.depfile import format_depfile, parse_depfile, read_depfile, write_depfile


def test_parse_simple_depfile() -> None:
    deps = parse_depfile("build/app.dill: lib/main.dart lib/src/a.dart\n")
    assert deps == {"lib/main.dart", "lib/src/a.dart"}


def test_parse_escaped_spaces() -> None:
    deps = parse_depfile("out: /my\\ project/lib/main.dart other.dart\n")
    assert deps == {"/my project/lib/main.dart", "other.dart"}


def test_parse_line_continuations() -> None:
    deps = parse_depfile("out: a.dart \\\n  b.dart \\\n  c.dart\n")
    assert deps == {"a.dart", "b.dart", "c.dart"}


def test_parse_ignores_malformed_lines() -> None:
    assert parse_depfile("garbage without separator\n\n") == set()
    assert parse_depfile("junk\nout: a.dart\n") == {"a.dart"}


def test_write_and_read_round_trip(tmp_path: Path) -> None:
    depfile = tmp_path / "nested" / "app.d"
    write_depfile(depfile, ["app.flx"], ["z.png", "dir with space/a.png", "z.png"])
    assert depfile.read_text() == "app.flx: dir\\ with\\ space/a.png z.png\n"
    assert read_depfile(depfile) == {"dir with space/a.png", "z.png"}


def test_format_frontend_server_depfile() -> None:
    assert (
        format_depfile(["frontend_server.d"], ["/engine/frontend_server.dart.snapshot"])
        == "frontend_server.d: /engine/frontend_server.dart.snapshot\n"
    )
