"""Print the release notes of one version from a changelog file."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO


def extract(version: str, lines: Iterable[str]) -> list[str]:
    """Return the lines of the section for ``version``.

    The section starts after a ``# <version> (`` header, skips blank lines
    right after it, and ends at the next ``# `` header or end of input.
    A leading ``v`` in ``version`` is ignored.
    """
    if version.startswith("v"):
        version = version[1:]
    header = f"# {version} ("

    found_header = False
    printing = False
    section: list[str] = []
    for raw in lines:
        line = raw.rstrip("\n").removesuffix("\r")
        if printing:
            if line.startswith("# "):
                return section
            section.append(line)
        elif found_header:
            if line == "":
                continue
            if line.startswith("# "):
                return section
            printing = True
            section.append(line)
        elif line.startswith(header):
            found_header = True

    if not printing:
        raise ValueError(f'could not find version "{version}" in changelog')
    return section


def run(version: str, out: TextIO, path: str = "CHANGELOG.md") -> None:
    """Write the section for ``version`` from the file at ``path`` to ``out``."""
    with open(path, encoding="utf-8") as changelog:
        section = extract(version, changelog)
    for line in section:
        out.write(line + "\n")


def main(argv: list[str] | None = None) -> int:
    """Command entry point; takes a single VERSION argument."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("USAGE: extract_changelog VERSION")
        return 1
    try:
        run(args[0], sys.stdout)
    except (OSError, ValueError) as err:
        print(err, file=sys.stderr)
        return 1
    return 0