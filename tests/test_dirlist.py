import errno
import os

import pytest

from sfmrecon.dirlist import Directory, FileInfo, file_info, open_file


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "a").mkdir()
    (tmp_path / "c.txt").write_text("c")
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "a" / "inner.dat").write_text("x")
    return tmp_path


def test_sorted_puts_directories_first(tree):
    with Directory(str(tree), sort=True) as d:
        names = [f.name for f in d]
    assert names == [".", "..", "a", "b", "a.txt", "c.txt"]


def test_unsorted_has_same_entries(tree):
    with Directory(str(tree)) as d:
        names = {f.name for f in d}
    assert names == {".", "..", "a", "b", "a.txt", "c.txt"}


def test_entry_paths_join_with_slash(tree):
    with Directory(str(tree), sort=True) as d:
        paths = {f.name: f.path for f in d}
    assert paths["c.txt"] == f"{tree}/c.txt"


def test_kinds_and_extensions(tree):
    with Directory(str(tree), sort=True) as d:
        by_name = {f.name: f for f in d}
    assert by_name["a"].is_dir and not by_name["a"].is_reg
    assert by_name["a.txt"].is_reg and not by_name["a.txt"].is_dir
    assert by_name["a.txt"].extension == "txt"
    assert by_name["a"].extension == ""


def test_len_and_getitem(tree):
    d = Directory(str(tree), sort=True)
    assert len(d) == 6
    assert d[2].name == "a"
    with pytest.raises(IndexError):
        d[6]


def test_len_requires_sorted(tree):
    d = Directory(str(tree))
    with pytest.raises(TypeError):
        len(d)
    assert len(Directory(str(tree), sort=True)) == 6


def test_open_subdir(tree):
    d = Directory(str(tree), sort=True)
    assert d.open_subdir(2) is d
    assert d.path == f"{tree}/a"
    assert [f.name for f in d] == [".", "..", "inner.dat"]


def test_open_subdir_on_file_fails(tree):
    d = Directory(str(tree), sort=True)
    with pytest.raises(FileNotFoundError):
        d.open_subdir(4)


def test_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError) as info:
        Directory(str(tmp_path / "nope"))
    assert info.value.errno == errno.ENOENT


def test_file_is_not_a_directory(tree):
    with pytest.raises(FileNotFoundError):
        Directory(str(tree / "a.txt"))


def test_empty_path():
    with pytest.raises(ValueError):
        Directory("")


def test_path_too_long():
    with pytest.raises(OSError) as info:
        Directory("x" * 5000)
    assert info.value.errno == errno.ENAMETOOLONG


def test_closed_directory(tree):
    with Directory(str(tree)) as d:
        pass
    assert d.path == ""
    with pytest.raises(ValueError):
        list(d)


def test_open_file_scans_parent(tree):
    info = open_file(str(tree / "c.txt"))
    assert info == FileInfo(f"{tree}/c.txt", "c.txt", "txt", False, True)


def test_open_file_relative(tree, monkeypatch):
    monkeypatch.chdir(tree)
    info = open_file("a")
    assert info.path == "./a"
    assert info.is_dir


def test_open_file_missing(tree):
    with pytest.raises(FileNotFoundError):
        open_file(str(tree / "absent.bin"))


def test_file_info_direct(tree):
    info = file_info(str(tree / "a.txt"))
    assert info.name == "a.txt"
    assert info.path == str(tree / "a.txt")
    assert info.is_reg


def test_entry_count_matches_listdir(tree):
    with Directory(str(tree), sort=True) as d:
        assert len(d) == len(os.listdir(tree)) + 2