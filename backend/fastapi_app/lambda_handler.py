from __future__ import annotations

import json
import logging

from mangum import Mangum

from backend.fastapi_app.main import app

logger = logging.getLogger(__name__)


def _safe_get(d, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _resolve_base_path(event):
    """/dev や /prod などのステージ名を Mangum 側で剥がすための base path"""
    stage = _safe_get(event, "requestContext", "stage", default=None)
    if stage and stage != "$default":
        return f"/{stage}"
    return None


def handler(event, context):
    logger.info(
        json.dumps(
            {
                "diag": "incoming_request",
                "stage": _safe_get(event, "requestContext", "stage", default=None),
                "method": _safe_get(event, "requestContext", "http", "method", default=None),
                "rawPath": _safe_get(event, "rawPath", default=None),
                "requestContext.http.path": _safe_get(
                    event, "requestContext", "http", "path", default=None
                ),
            },
            ensure_ascii=False,
        )
    )

    asgi = Mangum(app, api_gateway_base_path=_resolve_base_path(event))
    return asgi(event, context)
