"""Directory listing with per-entry file information.

Entries include ``.`` and ``..`` as the operating system reports them.
Sorted listings put directories first and then order entries by name.
"""

from __future__ import annotations

import errno
import os
import stat
from dataclasses import dataclass
from typing import Iterator

PATH_MAX = 4096
FILENAME_MAX = 256
_PATH_EXTRA = 2 if os.name == "nt" else 0


def _name_too_long(path: str) -> OSError:
    return OSError(errno.ENAMETOOLONG, os.strerror(errno.ENAMETOOLONG), path)


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def _byte_len(text: str) -> int:
    return len(os.fsencode(text))


def _check_path(path: str) -> None:
    if not path:
        raise ValueError("path must not be empty")
    if _byte_len(path) + _PATH_EXTRA >= PATH_MAX:
        raise _name_too_long(path)


def _extension(name: str) -> str:
    _, dot, ext = name.rpartition(".")
    return ext if dot else ""


@dataclass(frozen=True)
class FileInfo:
    """What is known about one directory entry."""

    path: str
    name: str
    extension: str
    is_dir: bool
    is_reg: bool


def _make_info(path: str, name: str) -> FileInfo:
    mode = os.stat(path).st_mode
    return FileInfo(
        path=path,
        name=name,
        extension=_extension(name),
        is_dir=stat.S_ISDIR(mode),
        is_reg=stat.S_ISREG(mode),
    )


def file_info(path: str) -> FileInfo:
    """Describe the file at ``path`` directly, following symbolic links."""
    _check_path(path)
    name = os.path.basename(path.rstrip("/" + os.sep)) or path
    return _make_info(path, name)


def _split_parent(path: str) -> tuple[str, str]:
    stripped = path.rstrip("/" + os.sep)
    if not stripped:
        return path[0], path[0]
    head, tail = os.path.split(stripped)
    if not head:
        head = "."
    elif head != os.sep and head != "/":
        head = head.rstrip("/" + os.sep) or head[0]
    return head, tail


def open_file(path: str) -> FileInfo:
    """Find ``path`` by scanning its parent directory and describe it."""
    _check_path(path)
    parent, base = _split_parent(path)
    with Directory(parent) as directory:
        for info in directory:
            if info.name == base:
                return info
    raise _not_found(path)


class Directory:
    """An open directory whose entries can be iterated or, when sorted, indexed."""

    def __init__(self, path: str, sort: bool = False) -> None:
        self.path = ""
        self._names: list[str] | None = None
        self._files: list[FileInfo] | None = None
        self._open(path, sort)

    def _open(self, path: str, sort: bool) -> None:
        _check_path(path)
        self.close()
        try:
            names = os.listdir(path)
        except OSError as exc:
            raise _not_found(path) from exc
        self.path = path
        self._names = [".", ".."] + names
        if sort:
            files = [self._read(name) for name in self._names]
            files.sort(key=lambda f: (not f.is_dir, os.fsencode(f.name)))
            self._files = files

    def _read(self, name: str) -> FileInfo:
        if _byte_len(self.path) + _byte_len(name) + 1 + _PATH_EXTRA >= PATH_MAX:
            raise _name_too_long(name)
        if _byte_len(name) >= FILENAME_MAX:
            raise _name_too_long(name)
        return _make_info(f"{self.path}/{name}", name)

    def _require_open(self) -> list[str]:
        if self._names is None:
            raise ValueError("directory is closed")
        return self._names

    def _require_sorted(self) -> list[FileInfo]:
        self._require_open()
        if self._files is None:
            raise TypeError("directory was not opened sorted")
        return self._files

    @property
    def sorted(self) -> bool:
        return self._files is not None

    def __iter__(self) -> Iterator[FileInfo]:
        names = self._require_open()
        if self._files is not None:
            return iter(list(self._files))
        return (self._read(name) for name in list(names))

    def __len__(self) -> int:
        return len(self._require_sorted())

    def __getitem__(self, index: int) -> FileInfo:
        files = self._require_sorted()
        try:
            return files[index]
        except IndexError:
            raise IndexError(f"no entry {index} in {self.path!r}") from None

    def open_subdir(self, index: int) -> Directory:
        """Replace this listing with the sorted listing of subdirectory ``index``."""
        files = self._require_sorted()
        if not 0 <= index < len(files) or not files[index].is_dir:
            raise _not_found(str(index))
        self._open(files[index].path, True)
        return self

    def close(self) -> None:
        self.path = ""
        self._names = None
        self._files = None

    def __enter__(self) -> Directory:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()