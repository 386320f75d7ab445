from __future__ import annotations

from typing import Iterable, List, Optional


class InvalidBase64Error(Exception):
    """Base64 デコード失敗時に投げる独自例外"""

    pass


class JsonFlattenError(Exception):
    """JSON 列展開処理で発生するエラーの基底クラス

    - code    : API レスポンスの error.code にそのまま載せる識別子
    - columns : 問題のあった列名（該当する場合のみ）
    """

    code = "JSON_FLATTEN_ERROR"
    default_message = "An error occurred while processing the CSV."

    def __init__(
        self,
        message: Optional[str] = None,
        columns: Optional[Iterable[str]] = None,
    ) -> None:
        self.columns: List[str] = list(columns or [])
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedCSVError(JsonFlattenError):
    code = "MALFORMED_CSV"
    default_message = "An error occurred while reading the CSV file."


class EmptyInputError(JsonFlattenError):
    code = "EMPTY_INPUT"
    default_message = "The CSV file is empty or invalid."


class NoFileProvidedError(JsonFlattenError):
    code = "NO_FILE_PROVIDED"
    default_message = "Please upload a CSV file before processing."


class InvalidColumnSpecError(JsonFlattenError):
    code = "INVALID_COLUMN_SPEC"
    default_message = "Please provide valid names for all JSON columns."


class NoJSONColumnsDetectedError(JsonFlattenError):
    code = "NO_JSON_COLUMNS_DETECTED"
    default_message = "No JSON columns were detected in the first row."


class MissingColumnsError(JsonFlattenError):
    code = "MISSING_COLUMNS"

    def __init__(self, columns: Iterable[str]) -> None:
        columns = list(columns)
        super().__init__(
            f"The following columns are missing: {', '.join(columns)}.",
            columns=columns,
        )


class InvalidJSONColumnsError(JsonFlattenError):
    code = "INVALID_JSON_COLUMNS"

    def __init__(self, columns: Iterable[str]) -> None:
        columns = list(columns)
        super().__init__(
            f"The following columns do not contain valid JSON: {', '.join(columns)}.",
            columns=columns,
        )
