from __future__ import annotations

from student_sync.infrastructure.external.sheets_sync.csv_parser import (
    parse_csv,
    split_csv_rows,
    values_to_raw_table,
)


def test_quoted_comma_and_escaped_quote() -> None:
    rows = split_csv_rows('"a,b","c""d"')
    assert rows == [["a,b", 'c"d']]


def test_first_row_is_trimmed_headers() -> None:
    table = parse_csv(" Register No , Name \n21CS001,Asha\n")
    assert table.headers == ["Register No", "Name"]
    assert table.rows == [["21CS001", "Asha"]]


def test_carriage_returns_are_discarded() -> None:
    table = parse_csv("a,b\r\n1,2\r\n3,4")
    assert table.headers == ["a", "b"]
    assert table.rows == [["1", "2"], ["3", "4"]]


def test_quoted_newline_stays_inside_field() -> None:
    table = parse_csv('name,address\nAsha,"12 Main St\nChennai"\n')
    assert table.rows == [["Asha", "12 Main St\nChennai"]]


def test_trailing_unterminated_row_is_emitted() -> None:
    table = parse_csv("a,b\n1,")
    assert table.rows == [["1", ""]]


def test_ragged_rows_are_kept_as_is() -> None:
    table = parse_csv("a,b,c\n1\n1,2,3,4\n")
    assert table.rows == [["1"], ["1", "2", "3", "4"]]


def test_empty_input_returns_empty_table() -> None:
    table = parse_csv("")
    assert table.headers == []
    assert table.rows == []
    assert table.is_empty()
    assert parse_csv(None).is_empty()


def test_values_grid_cells_are_stringified() -> None:
    table = values_to_raw_table([[" Register No ", "Year"], ["21CS001", 3], ["21CS002", None]])
    assert table.headers == ["Register No", "Year"]
    assert table.rows == [["21CS001", "3"], ["21CS002", ""]]
