import io

import openpyxl
import pytest

from errors import RequestValidationFailed
from spreadsheet import PREVIEW_ROWS, parse_upload


def _xlsx(rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_parse_csv():
    content = b"id,name,age\n1,Alice,30\n2,Bob,\n"
    sheet = parse_upload("people.csv", content)
    assert sheet.columns == ["id", "name", "age"]
    assert sheet.rows == [
        {"id": "1", "name": "Alice", "age": "30"},
        {"id": "2", "name": "Bob", "age": None},
    ]


def test_parse_xlsx_keeps_native_values():
    content = _xlsx([["id", None, "active"], ["a", 1.5, True], ["b", None, False]])
    sheet = parse_upload("scores.xlsx", content)
    assert sheet.columns == ["id", "col_1", "active"]
    assert sheet.rows[0] == {"id": "a", "col_1": 1.5, "active": True}
    assert sheet.rows[1] == {"id": "b", "col_1": None, "active": False}


def test_preview_is_first_rows():
    content = ("n\n" + "\n".join(str(i) for i in range(20))).encode()
    sheet = parse_upload("n.csv", content)
    assert len(sheet.rows) == 20
    assert sheet.preview == sheet.rows[:PREVIEW_ROWS]


def test_repeated_headers_are_made_unique():
    sheet = parse_upload("d.csv", b"a,a,b,a\n1,2,3,4\n")
    assert sheet.columns == ["a", "a_1", "b", "a_2"]
    assert sheet.rows == [{"a": "1", "a_1": "2", "b": "3", "a_2": "4"}]


def test_blank_header_clashing_with_a_named_column():
    sheet = parse_upload("d.csv", b"col_1,,x\n1,2,3\n")
    assert sheet.columns == ["col_1", "col_1_1", "x"]
    assert sheet.rows[0] == {"col_1": "1", "col_1_1": "2", "x": "3"}


@pytest.mark.parametrize(
    "filename, content",
    [
        ("notes.pdf", b"%PDF"),
        ("empty.csv", b""),
        ("header_only.csv", b"a,b\n"),
        ("broken.xlsx", b"not a zip"),
    ],
)
def test_rejected_uploads(filename, content):
    with pytest.raises(RequestValidationFailed):
        parse_upload(filename, content)
