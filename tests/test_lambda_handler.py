import json

from backend.fastapi_app.lambda_handler import _resolve_base_path, _safe_get, handler


def _http_api_event(method: str, path: str, stage: str = "dev") -> dict:
    """API Gateway HTTP API (payload v2.0) の最小イベント"""
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": path,
        "rawQueryString": "",
        "headers": {
            "host": "example.execute-api.ap-northeast-1.amazonaws.com",
            "x-forwarded-proto": "https",
        },
        "requestContext": {
            "stage": stage,
            "http": {
                "method": method,
                "path": path,
                "protocol": "HTTP/1.1",
                "sourceIp": "127.0.0.1",
                "userAgent": "pytest",
            },
        },
        "isBase64Encoded": False,
    }


def test_safe_get_walks_nested_dicts():
    event = {"requestContext": {"http": {"method": "POST"}}}

    assert _safe_get(event, "requestContext", "http", "method") == "POST"
    assert _safe_get(event, "requestContext", "stage", default="x") == "x"
    assert _safe_get({"requestContext": "oops"}, "requestContext", "http") is None


def test_resolve_base_path_strips_named_stage():
    assert _resolve_base_path({"requestContext": {"stage": "dev"}}) == "/dev"


def test_resolve_base_path_ignores_default_stage():
    assert _resolve_base_path({"requestContext": {"stage": "$default"}}) is None
    assert _resolve_base_path({}) is None


def test_handler_serves_health_behind_stage_prefix():
    """/dev/health で来たリクエストがステージを剥がされて /health に届くこと"""
    resp = handler(_http_api_event("GET", "/dev/health"), None)

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"]) == {"status": "ok", "version": "0.1.0"}
