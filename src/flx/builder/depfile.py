"""Reading and writing Make-style depfiles (`out1 out2: in1 in2 ...`)."""

from collections.abc import Iterable
from pathlib import Path
import re

_SEPARATOR_EXPR = re.compile(r"([^\\]) ")
_ESCAPE_EXPR = re.compile(r"\\(.)")


def parse_depfile(contents: str) -> set[str]:
    """
    Returns the input paths listed in depfile `contents`.

    Paths are separated by unescaped spaces or newlines and a backslash escapes
    the following character. Content without an `outputs: inputs` separator
    contributes nothing.
    """
    dependencies: set[str] = set()
    for line in contents.replace("\\\n", " ").splitlines():
        _, sep, inputs = line.partition(": ")
        if not sep:
            continue
        for raw in _SEPARATOR_EXPR.sub(r"\1\n", inputs).split("\n"):
            path = _ESCAPE_EXPR.sub(r"\1", raw).strip()
            if path:
                dependencies.add(path)
    return dependencies


def read_depfile(depfile_path: Path) -> set[str]:
    return parse_depfile(depfile_path.read_text())


def _escape(path: str) -> str:
    return path.replace("\\", "\\\\").replace(" ", "\\ ")


def format_depfile(outputs: Iterable[str], inputs: Iterable[str]) -> str:
    out = " ".join(_escape(p) for p in outputs)
    deps = " ".join(_escape(p) for p in sorted(set(inputs)))
    return f"{out}: {deps}\n"


def write_depfile(depfile_path: Path, outputs: Iterable[str], inputs: Iterable[str]) -> None:
    depfile_path.parent.mkdir(parents=True, exist_ok=True)
    depfile_path.write_text(format_depfile(outputs, inputs))
