from pathlib import Path

import pytest

from sqlite_babel.tools.sqlite_babel.expand import (
    HLINE,
    expand_body,
    expand_vars,
    render_value,
    table_to_csv,
)


def test_table_variable_is_written_to_csv_file(tmp_path):
    expansion = expand_vars(".import $t people", {"t": [["x", "y"], ["1", "2"]]}, tmp_path)

    assert len(expansion.data_files) == 1
    data_file = expansion.data_files[0]
    assert data_file.parent == tmp_path
    assert data_file.name.startswith("sqlite-data-")
    assert data_file.read_text() == "x,y\n1,2\n"
    assert expansion.body == f".import {data_file} people"


def test_cleanup_removes_data_files(tmp_path):
    expansion = expand_vars("$a $b", {"a": [["1"]], "b": [["2"]]}, tmp_path)
    files = list(expansion.data_files)

    assert len(files) == 2
    assert files[0] != files[1]

    expansion.cleanup()

    assert not any(path.exists() for path in files)
    assert expansion.data_files == []


def test_scalars_are_rendered():
    expansion = expand_vars(
        "SELECT * FROM $tbl WHERE n > $n AND ok = $ok AND x IS $missing",
        {"tbl": "people", "n": 3, "ok": True, "missing": None},
    )

    assert expansion.body == "SELECT * FROM people WHERE n > 3 AND ok = true AND x IS null"
    assert expansion.data_files == []


def test_longer_names_are_substituted_first():
    expansion = expand_vars("SELECT $x, $xy;", {"x": "1", "xy": "2"})

    assert expansion.body == "SELECT 1, 2;"


def test_every_occurrence_is_replaced():
    assert expand_vars("$v + $v", {"v": 5}).body == "5 + 5"


def test_unreferenced_table_creates_no_file(tmp_path):
    expansion = expand_vars("SELECT 1;", {"t": [["a"]]}, tmp_path)

    assert expansion.data_files == []
    assert list(tmp_path.iterdir()) == []


def test_table_to_csv_quotes_and_skips_hlines():
    table = [["name", "note"], HLINE, ["ann", "a,b"], ["bob", 'say "hi"'], [1, 2.5]]

    assert table_to_csv(table) == 'name,note\nann,"a,b"\nbob,"say ""hi"""\n1,2.5\n'


def test_table_to_csv_quotes_embedded_newlines():
    assert table_to_csv([["multi\nline", "x"]]) == '"multi\nline",x\n'


@pytest.mark.parametrize(("value", "expected"), [("abc", "abc"), (42, "42"), (1.5, "1.5"), (False, "false")])
def test_render_value(value, expected):
    assert render_value(value) == expected


def test_expand_body_wraps_prologue_and_epilogue():
    options = {"prologue": ".timeout 1000", "epilogue": ".quit"}

    expansion = expand_body("SELECT $n;", options, {"n": 1})

    assert expansion.body == ".timeout 1000\nSELECT 1;\n.quit"


def test_expand_body_without_prologue_is_just_the_body():
    assert expand_body("SELECT 1;", {"db": "x.db"}).body == "SELECT 1;"


def test_system_temp_dir_is_used_without_data_dir():
    expansion = expand_vars("$t", {"t": [["a"]]})
    try:
        path = Path(expansion.body)
        assert path.exists()
        assert path.read_text() == "a\n"
    finally:
        expansion.cleanup()
