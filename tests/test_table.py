import pytest

from core.json_flatten.errors import MalformedCSVError
from core.json_flatten.table import Table, parse_table, serialize_table


def test_parse_uses_first_row_as_header():
    raw = b'id,meta\r\n1,"{""a"": 1}"\r\n2,"{}"\r\n'

    table = parse_table(raw)

    assert table.headers == ["id", "meta"]
    assert table.records == [
        {"id": "1", "meta": '{"a": 1}'},
        {"id": "2", "meta": "{}"},
    ]
    assert table.row_count == 2


def test_parse_accepts_lf_and_crlf_alike():
    assert parse_table(b"a,b\n1,2\n") == parse_table(b"a,b\r\n1,2\r\n")


def test_parse_pads_short_rows_with_empty_cells():
    table = parse_table(b"a,b,c\n1\n4,5\n")

    assert table.records == [
        {"a": "1", "b": "", "c": ""},
        {"a": "4", "b": "5", "c": ""},
    ]


def test_parse_skips_blank_lines():
    table = parse_table(b"a,b\n\n1,2\n\n")

    assert table.records == [{"a": "1", "b": "2"}]


def test_parse_keeps_line_breaks_inside_quoted_fields():
    table = parse_table(b'id,note\r\n1,"line1\r\nline2"\r\n')

    assert table.records == [{"id": "1", "note": "line1\r\nline2"}]


def test_parse_strips_utf8_bom():
    table = parse_table("\ufeffid,名前\n1,テスト\n".encode("utf-8"))

    assert table.headers == ["id", "名前"]
    assert table.records == [{"id": "1", "名前": "テスト"}]


def test_parse_duplicate_headers_last_value_wins():
    table = parse_table(b"a,a,b\n1,2,3\n")

    assert table.headers == ["a", "b"]
    assert table.records == [{"a": "2", "b": "3"}]


@pytest.mark.parametrize(
    "raw",
    [
        b'a,b\n1,"unterminated\n',
        b'a,b\n"x"y,1\n',
        b"a,b\n1,2,3\n",
        b"a,b\n\xff\xfe,1\n",
    ],
    ids=["unterminated-quote", "text-after-closing-quote", "too-many-cells", "not-utf8"],
)
def test_parse_rejects_malformed_input(raw):
    with pytest.raises(MalformedCSVError):
        parse_table(raw)


def test_parse_empty_and_header_only_inputs_have_no_rows():
    empty = parse_table(b"")
    header_only = parse_table(b"id,meta\n")

    assert empty.is_empty
    assert empty.headers == []
    assert header_only.is_empty
    assert header_only.headers == ["id", "meta"]


def test_serialize_quotes_only_when_needed():
    table = Table(
        headers=["id", "note"],
        records=[
            {"id": "1", "note": 'he said "hi", then\nleft'},
            {"id": "2", "note": "plain"},
        ],
    )

    assert serialize_table(table) == (
        b'id,note\r\n'
        b'1,"he said ""hi"", then\nleft"\r\n'
        b"2,plain\r\n"
    )


def test_serialize_with_lf_line_ending():
    table = Table(headers=["a", "b"], records=[{"a": "1", "b": ""}])

    assert serialize_table(table, line_ending="lf") == b"a,b\n1,\n"


@pytest.mark.parametrize(
    "raw",
    [
        b'id,meta\r\n1,"{""a"": ""x,y""}"\r\n',
        b"a,b,c\n1,,3\n,,\n",
        'col\n"multi\nline"\n"日本語"\n'.encode("utf-8"),
        b'a,b\n"x\ry",1\n"p\r\nq",2\n',
    ],
)
def test_parse_serialize_round_trip_is_stable(raw):
    table = parse_table(raw)

    assert parse_table(serialize_table(table)) == table
    assert parse_table(serialize_table(table, line_ending="lf")) == table


@pytest.mark.parametrize("line_ending", ["crlf", "lf"])
def test_serialize_quotes_fields_with_carriage_return(line_ending):
    """\\r だけを含むセルも改行として扱い、クォートして書き出す"""
    table = Table(headers=["a", "b"], records=[{"a": "x\ry", "b": "1"}])

    raw = serialize_table(table, line_ending=line_ending)

    assert b'"x\ry"' in raw
    assert parse_table(raw) == table
