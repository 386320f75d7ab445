from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


LineEnding = Literal["crlf", "lf"]


class Stats(BaseModel):
    rows: int = 0
    columns_in: int = 0
    columns_out: int = 0


class FlattenResult(BaseModel):
    """
    展開結果。

    - csv_text          : 出力 CSV（processed.csv の中身）
    - columns           : 出力 CSV のヘッダ順
    - flattened_columns : 実際に展開した JSON 列
    """

    csv_text: str
    columns: List[str] = Field(default_factory=list)
    flattened_columns: List[str] = Field(default_factory=list)
    stats: Optional[Stats] = None


class FlattenResponse(BaseModel):
    result: FlattenResult
    meta: Dict[str, Any]


class DetectResult(BaseModel):
    columns: List[str] = Field(default_factory=list)


class DetectResponse(BaseModel):
    result: DetectResult
    meta: Dict[str, Any]


class DetectRequest(BaseModel):
    csv_b64: str


class FlattenRequest(BaseModel):
    """
    CSV JSON Flatten API (v0.1) リクエストモデル

    - csv_b64     : Base64 エンコードした CSV
    - columns     : 展開する JSON 列名。省略時は先頭データ行から自動判定する
    - line_ending : 出力 CSV の改行コード
    """

    csv_b64: str
    # 空文字などの検証はコア側 (InvalidColumnSpecError) で行う
    columns: Optional[List[str]] = None
    line_ending: LineEnding = "crlf"

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "csv_b64": "<Base64 encoded CSV string>",
                "columns": ["meta"],
                "line_ending": "crlf",
            }
        }
    )
