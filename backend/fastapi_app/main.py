from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response

# ============================================================
# プロジェクトルートを sys.path に追加
# （Lambda / uvicorn どちらでも core パッケージを解決できるように）
# ============================================================
ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from backend.fastapi_app.settings import AppSettings, configure_logging  # noqa: E402
from core.json_flatten.errors import (  # noqa: E402
    InvalidBase64Error,
    JsonFlattenError,
    NoFileProvidedError,
)
from core.json_flatten.models import (  # noqa: E402
    DetectRequest,
    FlattenRequest,
    LineEnding,
)
from core.json_flatten.service import (  # noqa: E402
    API_VERSION,
    process_detect,
    process_flatten,
    run_flatten,
)

settings = AppSettings.from_env()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "processed.csv"
OUTPUT_MEDIA_TYPE = "text/csv; charset=utf-8"


class InvalidFileTypeError(JsonFlattenError):
    code = "INVALID_FILE_TYPE"
    default_message = "Please upload a valid CSV file."


class PayloadTooLargeError(Exception):
    pass


# ============================================================
# API Gateway 側で JSON_FLATTEN_ROOT_PATH をプレフィックスとして
# ルーティングしているため、FastAPI には root_path を指定し、
# ルート定義は /v0/... にする
# ============================================================
app = FastAPI(
    title="CSV JSON Flatten API",
    version=API_VERSION,
    description="Flatten JSON-encoded CSV columns into top-level columns (v0.1)",
    root_path=settings.root_path,
)


def _error_response(
    status_code: int,
    code: str,
    message: str,
    columns: Optional[List[str]] = None,
) -> JSONResponse:
    error = {"code": code, "message": message}
    if columns is not None:
        error["columns"] = columns
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "meta": {
                "version": API_VERSION,
            },
        },
    )


@app.exception_handler(InvalidBase64Error)
async def invalid_base64_handler(_: Request, exc: InvalidBase64Error) -> JSONResponse:
    return _error_response(400, "INVALID_BASE64", str(exc))


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(_: Request, exc: PayloadTooLargeError) -> JSONResponse:
    return _error_response(413, "PAYLOAD_TOO_LARGE", str(exc))


@app.exception_handler(JsonFlattenError)
async def json_flatten_error_handler(_: Request, exc: JsonFlattenError) -> JSONResponse:
    logger.info("request rejected: %s %s", exc.code, exc.columns or "")
    return _error_response(400, exc.code, exc.message, columns=exc.columns)


def _check_size(size: int) -> None:
    if size > settings.max_upload_bytes:
        raise PayloadTooLargeError(
            f"File too large. Maximum size allowed is {settings.max_upload_bytes} bytes."
        )


def _estimated_decoded_size(csv_b64: str) -> int:
    # Base64 は 4 文字で 3 バイト
    compact_len = len("".join(csv_b64.split()))
    return compact_len * 3 // 4


@app.get("/health")
async def health_endpoint():
    return {"status": "ok", "version": API_VERSION}


@app.post("/v0/flatten")
async def flatten_endpoint(payload: FlattenRequest):
    _check_size(_estimated_decoded_size(payload.csv_b64))
    response = process_flatten(payload)
    return response.model_dump()


@app.post("/v0/detect")
async def detect_endpoint(payload: DetectRequest):
    _check_size(_estimated_decoded_size(payload.csv_b64))
    response = process_detect(payload)
    return response.model_dump()


# NOTE:
# ブラウザからのファイルアップロード用。成功時は processed.csv をそのまま返す。
# columns を 1 つも送らなければ先頭行から JSON 列を自動判定する。
@app.post("/v0/flatten/upload")
async def flatten_upload_endpoint(
    file: Optional[UploadFile] = File(None),
    columns: Optional[List[str]] = Form(None),
    line_ending: LineEnding = Form("crlf"),
):
    if file is None or not file.filename:
        raise NoFileProvidedError()
    if not file.filename.lower().endswith(".csv"):
        raise InvalidFileTypeError()

    raw = await file.read()
    _check_size(len(raw))

    outcome = run_flatten(raw, columns, line_ending=line_ending)
    logger.info(
        "processed %s: %d row(s), columns=%s",
        file.filename,
        outcome.table.row_count,
        outcome.columns,
    )
    return Response(
        content=outcome.payload,
        media_type=OUTPUT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{OUTPUT_FILENAME}"'},
    )
