from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .errors import MalformedCSVError

logger = logging.getLogger(__name__)

Record = Dict[str, str]

LINE_TERMINATORS = {
    "crlf": "\r\n",
    "lf": "\n",
}


@dataclass(frozen=True)
class Table:
    """ヘッダ行 + レコード列で表した CSV 表

    - headers : 列名（先頭行の順序を保持、重複なし）
    - records : 各行。常に headers と同じキー集合を持つ
    """

    headers: List[str] = field(default_factory=list)
    records: List[Record] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records


# ---------------------------------------------------------------------------
# 読み込み
# ---------------------------------------------------------------------------


def _decode_bytes(raw: bytes) -> str:
    """UTF-8（BOM 付きも可）としてデコードする"""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedCSVError() from exc


def _tokenize(text: str) -> List[List[str]]:
    """csv.reader (strict) で 2 次元配列へ。空行は読み飛ばす。"""
    rows: List[List[str]] = []
    reader = csv.reader(
        io.StringIO(text, newline=""),
        delimiter=",",
        quotechar='"',
        doublequote=True,
        skipinitialspace=False,
        strict=True,
    )
    try:
        for row in reader:
            if not row:
                continue
            rows.append(row)
    except csv.Error as exc:
        raise MalformedCSVError() from exc
    return rows


def parse_table(raw: bytes) -> Table:
    """CSV バイト列を Table に変換する

    - 1 行目は常にヘッダ
    - 列数が足りない行は空文字で埋める
    - ヘッダより列数が多い行は MalformedCSVError
    - 重複したヘッダは 1 列にまとめる（値は後勝ち）
    """
    rows = _tokenize(_decode_bytes(raw))
    if not rows:
        return Table()

    header_row = rows[0]
    headers = list(dict.fromkeys(header_row))

    records: List[Record] = []
    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) > len(header_row):
            logger.debug(
                "row %d has %d cells, header has %d", line_no, len(row), len(header_row)
            )
            raise MalformedCSVError()
        padded = row + ["" for _ in range(len(header_row) - len(row))]
        records.append(dict(zip(header_row, padded)))

    logger.debug("parsed table: %d columns, %d rows", len(headers), len(records))
    return Table(headers=headers, records=records)


# ---------------------------------------------------------------------------
# 書き出し
# ---------------------------------------------------------------------------


def _has_line_break(row: List[str]) -> bool:
    return any("\r" in cell or "\n" in cell for cell in row)


def serialize_table(table: Table, line_ending: str = "crlf") -> bytes:
    """Table を CSV バイト列 (UTF-8) に変換する。クォートは必要最小限。

    csv.writer の QUOTE_MINIMAL は lineterminator に含まれる文字しか見ないため、
    LF 出力では改行 (\\r / \\n) を含む行だけ QUOTE_ALL の writer で書く。
    """
    output = io.StringIO(newline="")
    writer_kwargs = {
        "delimiter": ",",
        "quotechar": '"',
        "lineterminator": LINE_TERMINATORS[line_ending],
        "doublequote": True,
    }
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, **writer_kwargs)
    quote_all_writer = csv.writer(output, quoting=csv.QUOTE_ALL, **writer_kwargs)

    rows = [list(table.headers)]
    rows.extend([record.get(h, "") for h in table.headers] for record in table.records)

    for row in rows:
        if line_ending != "crlf" and _has_line_break(row):
            quote_all_writer.writerow(row)
        else:
            writer.writerow(row)

    return output.getvalue().encode("utf-8")
