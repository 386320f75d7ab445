from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .errors import (
    EmptyInputError,
    InvalidBase64Error,
    InvalidColumnSpecError,
    InvalidJSONColumnsError,
    MissingColumnsError,
    NoFileProvidedError,
    NoJSONColumnsDetectedError,
)
from .models import (
    DetectRequest,
    DetectResponse,
    DetectResult,
    FlattenRequest,
    FlattenResponse,
    FlattenResult,
    Stats,
)
from .table import Record, Table, parse_table, serialize_table

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


@dataclass(frozen=True)
class FlattenOutcome:
    """1 回の展開処理の入出力一式"""

    source: Table
    table: Table
    columns: List[str]
    auto_detected: bool
    payload: bytes


# ---------------------------------------------------------------------------
# Base64 / JSON ユーティリティ
# ---------------------------------------------------------------------------


def _decode_base64_to_bytes(csv_b64: str) -> bytes:
    """Base64 -> バイト列

    - 先に空白類（スペース・改行・タブなど）をすべて削除
    - そのうえで validate=True で厳密に Base64 を検証
    - UTF-8 としての妥当性は parse_table 側で判定する
    """
    try:
        compact = "".join(csv_b64.split())
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidBase64Error("csv_b64 is not valid Base64 text") from exc


def _reject_constant(name: str) -> Any:
    # json.loads は既定で NaN / Infinity を受け付けてしまう
    raise ValueError(f"invalid JSON constant: {name}")


def _load_json(text: str) -> Any:
    """厳密な JSON としてパースする。失敗時は ValueError。"""
    return json.loads(text, parse_constant=_reject_constant)


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """セル文字列を JSON オブジェクトとして解釈する。オブジェクト以外は None。"""
    try:
        value = _load_json(text)
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    return value


def _cell_to_text(value: Any) -> str:
    """JSON の値を CSV セル用の文字列にする

    - 文字列はそのまま、null は空セル
    - 数値・真偽値は JSON 表記 (1, 1.5, true)。整数値の float は 1.0 -> 1
    - ネストしたオブジェクト/配列はコンパクトな JSON 文字列
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _validate_column_spec(columns: Optional[Sequence[str]]) -> List[str]:
    if not columns:
        raise InvalidColumnSpecError()
    if any(not isinstance(name, str) or not name.strip() for name in columns):
        raise InvalidColumnSpecError()
    if len(set(columns)) != len(columns):
        raise InvalidColumnSpecError("JSON column names must be unique.")
    return list(columns)


# ---------------------------------------------------------------------------
# JSON 列の自動判定
# ---------------------------------------------------------------------------


def auto_detect_json_columns(table: Optional[Table]) -> List[str]:
    """先頭データ行だけを見て JSON オブジェクトを持つ列を返す（ヘッダ順）

    2 行目以降は検証しないため、後続の flatten_table で
    InvalidJSONColumnsError になることはありうる。
    """
    if table is None:
        raise NoFileProvidedError()
    if table.is_empty:
        raise EmptyInputError()

    first = table.records[0]
    detected = [h for h in table.headers if _parse_json_object(first[h]) is not None]
    if not detected:
        raise NoJSONColumnsDetectedError()

    logger.debug("auto-detected JSON columns: %s", detected)
    return detected


# ---------------------------------------------------------------------------
# 展開本体
# ---------------------------------------------------------------------------


def _build_headers(
    headers: List[str],
    columns: List[str],
    new_columns: Dict[str, Dict[str, None]],
) -> List[str]:
    """出力ヘッダを組み立てる

    展開しない列は元の位置のまま、展開した列はその位置に新しい列を
    初出順でまとめて差し込む。既存列と同名になった列は既存列の位置を使う。
    """
    requested = set(columns)
    surviving = {h for h in headers if h not in requested}

    out: Dict[str, None] = {}
    for h in headers:
        if h not in requested:
            out.setdefault(h)
            continue
        for name in new_columns.get(h, {}):
            if name not in surviving:
                out.setdefault(name)
    return list(out)


def flatten_table(table: Table, columns: Sequence[str]) -> Table:
    """指定された JSON 列を 1 階層だけ展開した新しい Table を返す

    全行・全列を走査してから、欠落列 → 不正 JSON 列の順でまとめて報告する。
    途中までの結果は返さない。
    """
    columns = _validate_column_spec(columns)

    if table.is_empty:
        raise EmptyInputError()

    header_set = set(table.headers)
    # dict を順序付き集合として使う
    missing: Dict[str, None] = {}
    invalid: Dict[str, None] = {}
    new_columns: Dict[str, Dict[str, None]] = {}
    rewritten: List[Record] = []

    for record in table.records:
        new_record = dict(record)
        # この行で展開により書き込んだ列名
        written = set()

        for col in columns:
            if col not in header_set:
                missing.setdefault(col)
                continue

            try:
                value = _load_json(record[col])
            except ValueError:
                invalid.setdefault(col)
                continue
            if value is None:
                invalid.setdefault(col)
                continue

            # オブジェクト以外（数値・真偽値・文字列・配列）はキーなしとして扱う
            obj = value if isinstance(value, dict) else {}

            seen = new_columns.setdefault(col, {})
            for key, item in obj.items():
                name = f"{col}_{key}"
                new_record[name] = _cell_to_text(item)
                written.add(name)
                seen.setdefault(name)
            # 先に展開で書き込まれた同名列は残す（後勝ち）
            if col not in written:
                new_record.pop(col, None)

        rewritten.append(new_record)

    if missing:
        logger.warning("missing JSON columns: %s", list(missing))
        raise MissingColumnsError(missing)
    if invalid:
        logger.warning("columns with invalid JSON: %s", list(invalid))
        raise InvalidJSONColumnsError(invalid)

    headers = _build_headers(table.headers, columns, new_columns)
    records = [{h: rec.get(h, "") for h in headers} for rec in rewritten]

    logger.info(
        "flattened %d column(s) across %d row(s): %d -> %d columns",
        len(columns),
        len(records),
        len(table.headers),
        len(headers),
    )
    return Table(headers=headers, records=records)


# ---------------------------------------------------------------------------
# バイト列 → バイト列
# ---------------------------------------------------------------------------


def run_flatten(
    raw: Optional[bytes],
    columns: Optional[Sequence[str]] = None,
    line_ending: str = "crlf",
) -> FlattenOutcome:
    """parse → (自動判定) → 展開 → serialize を 1 回で行う

    columns が None の場合のみ先頭行から JSON 列を自動判定する。
    """
    if raw is None:
        raise NoFileProvidedError()

    auto_detected = columns is None
    if not auto_detected:
        # 列指定の誤りはファイルの中身より先に報告する
        columns = _validate_column_spec(columns)

    source = parse_table(raw)
    if auto_detected:
        columns = auto_detect_json_columns(source)

    table = flatten_table(source, columns)
    payload = serialize_table(table, line_ending=line_ending)

    return FlattenOutcome(
        source=source,
        table=table,
        columns=list(columns),
        auto_detected=auto_detected,
        payload=payload,
    )


def flatten_csv(
    raw: Optional[bytes],
    columns: Sequence[str],
    line_ending: str = "crlf",
) -> bytes:
    """(CSV バイト列, JSON 列名) -> 展開済み CSV バイト列"""
    if raw is None:
        raise NoFileProvidedError()
    columns = _validate_column_spec(columns)
    return run_flatten(raw, columns, line_ending=line_ending).payload


def detect_csv(raw: Optional[bytes]) -> List[str]:
    if raw is None:
        raise NoFileProvidedError()
    return auto_detect_json_columns(parse_table(raw))


# ---------------------------------------------------------------------------
# API エントリーポイント
# ---------------------------------------------------------------------------


def process_flatten(request: FlattenRequest) -> FlattenResponse:
    """CSV JSON Flatten API のメイン処理"""

    # 1) 列指定の検証（Base64 / CSV の中身より先）
    if request.columns is not None:
        _validate_column_spec(request.columns)

    # 2) Base64 -> バイト列
    raw = _decode_base64_to_bytes(request.csv_b64)

    # 3) parse → 展開 → serialize
    outcome = run_flatten(raw, request.columns, line_ending=request.line_ending)

    result = FlattenResult(
        csv_text=outcome.payload.decode("utf-8"),
        columns=outcome.table.headers,
        flattened_columns=outcome.columns,
        stats=Stats(
            rows=outcome.table.row_count,
            columns_in=len(outcome.source.headers),
            columns_out=len(outcome.table.headers),
        ),
    )
    meta = {
        "version": API_VERSION,
        "auto_detected": outcome.auto_detected,
        "line_ending": request.line_ending,
    }
    return FlattenResponse(result=result, meta=meta)


def process_detect(request: DetectRequest) -> DetectResponse:
    raw = _decode_base64_to_bytes(request.csv_b64)
    columns = detect_csv(raw)
    return DetectResponse(
        result=DetectResult(columns=columns),
        meta={"version": API_VERSION},
    )
