import os
import sys
from pathlib import Path

import pytest

# tests/ から見て 1 つ上 = プロジェクトルート
PROJECT_ROOT = Path(__file__).resolve().parents[1]

project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

# TestClient は root_path なしで叩くため、app の import より先に設定しておく
os.environ.setdefault("JSON_FLATTEN_ROOT_PATH", "")


@pytest.fixture
def meta_csv() -> bytes:
    """id / meta(JSON) / note の 3 列を持つ 2 行の CSV"""
    return (
        "id,meta,note\r\n"
        '1,"{""a"": 1, ""b"": 2}",hello\r\n'
        '2,"{""b"": 3, ""c"": ""x""}",world\r\n'
    ).encode("utf-8")


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from backend.fastapi_app.main import app

    return TestClient(app)
