"""Command-line views over directory listings."""

from __future__ import annotations

import argparse
import re
import sys
from typing import Iterable, TextIO

from .dirlist import Directory, FileInfo, open_file


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def describe_file(path: str) -> str:
    """Return a multi-line description of the file at ``path``."""
    info = open_file(path)
    return (
        f"Path: {info.path}\n"
        f"Name: {info.name}\n"
        f"Extension: {info.extension}\n"
        f"Is dir? {_yes_no(info.is_dir)}\n"
        f"Is regular file? {_yes_no(info.is_reg)}\n"
    )


def _label(info: FileInfo) -> str:
    return info.name + ("/" if info.is_dir else "")


def _lines(entries: Iterable[FileInfo]) -> Iterable[str]:
    return (_label(info) for info in entries)


def iterate_listing(path: str) -> list[str]:
    """List entry names in directory order, directories marked with a slash."""
    with Directory(path) as d:
        return list(_lines(d))


def sorted_listing(path: str) -> list[str]:
    """List entry names with directories first, then by name."""
    with Directory(path, sort=True) as d:
        return list(_lines(d))


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def interactive(path: str, stdin: TextIO, stdout: TextIO) -> None:
    """Browse from ``path``, entering the subdirectory whose number is read."""
    with Directory(path, sort=True) as d:
        while True:
            for index, info in enumerate(d):
                prefix = f"[{index}] " if info.is_dir else ""
                stdout.write(f"{prefix}{_label(info)}\n")
            stdout.write("?")
            line = stdin.readline()
            if not line:
                break
            choice = _atoi(line)
            if 0 <= choice < len(d):
                d.open_subdir(choice)


def _report(prefix: str, exc: Exception) -> None:
    detail = getattr(exc, "strerror", None) or str(exc)
    print(f"{prefix}: {detail}", file=sys.stderr)


def _print_listing(path: str, sort: bool) -> int:
    try:
        directory = Directory(path, sort=sort)
    except (OSError, ValueError) as exc:
        _report("Error opening file", exc)
        return 0
    with directory:
        try:
            for line in _lines(directory):
                print(line)
        except OSError as exc:
            _report("Error getting file", exc)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="sfmrecon-browse")
    commands = parser.add_subparsers(dest="command", required=True)
    file_cmd = commands.add_parser("file", help="describe one file")
    file_cmd.add_argument("path")
    for name in ("list", "sorted", "browse"):
        sub = commands.add_parser(name)
        sub.add_argument("path", nargs="?", default=".")
    args = parser.parse_args(argv)

    if args.command == "file":
        try:
            text = describe_file(args.path)
        except (OSError, ValueError) as exc:
            _report("Error opening file", exc)
            return 1
        sys.stdout.write(text)
        return 0
    if args.command == "list":
        return _print_listing(args.path, sort=False)
    if args.command == "sorted":
        return _print_listing(args.path, sort=True)

    try:
        Directory(args.path, sort=True).close()
    except (OSError, ValueError) as exc:
        _report("Error opening file", exc)
        return 0
    try:
        interactive(args.path, sys.stdin, sys.stdout)
    except OSError as exc:
        _report("Error opening subdirectory", exc)
    return 0