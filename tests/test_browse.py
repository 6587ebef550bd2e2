import io

import pytest

from sfmrecon.browse import (
    describe_file,
    interactive,
    iterate_listing,
    main,
    sorted_listing,
)


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "deep.txt").write_text("d")
    (tmp_path / "note.md").write_text("n")
    return tmp_path


def test_describe_file(tree):
    text = describe_file(str(tree / "note.md"))
    assert text == (
        f"Path: {tree}/note.md\n"
        "Name: note.md\n"
        "Extension: md\n"
        "Is dir? no\n"
        "Is regular file? yes\n"
    )


def test_describe_directory(tree):
    text = describe_file(str(tree / "sub"))
    assert "Is dir? yes\n" in text
    assert "Is regular file? no\n" in text


def test_iterate_listing(tree):
    assert set(iterate_listing(str(tree))) == {"./", "../", "sub/", "note.md"}


def test_sorted_listing(tree):
    assert sorted_listing(str(tree)) == ["./", "../", "sub/", "note.md"]


def test_interactive_enters_subdir(tree):
    out = io.StringIO()
    interactive(str(tree), io.StringIO("2\n"), out)
    first = "[0] ./\n[1] ../\n[2] sub/\nnote.md\n?"
    second = "[0] ./\n[1] ../\ndeep.txt\n?"
    assert out.getvalue() == first + second


def test_interactive_out_of_range_keeps_listing(tree):
    out = io.StringIO()
    interactive(str(tree), io.StringIO("99\n"), out)
    listing = "[0] ./\n[1] ../\n[2] sub/\nnote.md\n?"
    assert out.getvalue() == listing * 2


def test_interactive_non_number_selects_first(tree):
    out = io.StringIO()
    interactive(str(tree), io.StringIO("abc\n"), out)
    assert out.getvalue().count("sub/") == 2
    assert out.getvalue().count("?") == 2


def test_interactive_file_choice_fails(tree):
    with pytest.raises(FileNotFoundError):
        interactive(str(tree), io.StringIO("3\n"), io.StringIO())


def test_main_file(tree, capsys):
    assert main(["file", str(tree / "note.md")]) == 0
    assert "Name: note.md" in capsys.readouterr().out


def test_main_file_missing(tree, capsys):
    assert main(["file", str(tree / "gone")]) == 1
    assert capsys.readouterr().err.startswith("Error opening file: ")


def test_main_sorted(tree, capsys):
    assert main(["sorted", str(tree)]) == 0
    assert capsys.readouterr().out.splitlines() == ["./", "../", "sub/", "note.md"]


def test_main_list_missing_directory(tree, capsys):
    assert main(["list", str(tree / "gone")]) == 0
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("Error opening file: ")