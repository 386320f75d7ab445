from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_ROOT_PATH = "/json-flatten"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_LOG_LEVEL = "INFO"

LOGGER_NAMES = ("core.json_flatten", "backend.fastapi_app")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class AppSettings:
    """環境変数から読み込む実行時設定

    - JSON_FLATTEN_ROOT_PATH        : API Gateway 側のプレフィックス（FastAPI の root_path）
    - JSON_FLATTEN_MAX_UPLOAD_BYTES : 受け付ける CSV の最大バイト数
    - JSON_FLATTEN_LOG_LEVEL        : ログレベル
    """

    root_path: str = DEFAULT_ROOT_PATH
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        env = os.environ if environ is None else environ

        root_path = env.get("JSON_FLATTEN_ROOT_PATH", DEFAULT_ROOT_PATH).rstrip("/")

        raw_max = env.get("JSON_FLATTEN_MAX_UPLOAD_BYTES")
        if raw_max is None or raw_max.strip() == "":
            max_upload_bytes = DEFAULT_MAX_UPLOAD_BYTES
        else:
            try:
                max_upload_bytes = int(raw_max)
            except ValueError as exc:
                raise ConfigError(
                    f"JSON_FLATTEN_MAX_UPLOAD_BYTES must be an integer: {raw_max!r}"
                ) from exc
            if max_upload_bytes <= 0:
                raise ConfigError("JSON_FLATTEN_MAX_UPLOAD_BYTES must be positive")

        log_level = env.get("JSON_FLATTEN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(f"JSON_FLATTEN_LOG_LEVEL must be one of {_LOG_LEVELS}")

        return cls(
            root_path=root_path,
            max_upload_bytes=max_upload_bytes,
            log_level=log_level,
        )


class _LevelPrefixFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return f"{record.levelname} {record.name}: {record.getMessage()}"


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """アプリ用ロガーに stdout ハンドラを 1 つだけ付ける（何度呼んでもよい）"""
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)

        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_LevelPrefixFormatter())
        logger.addHandler(handler)
        logger.propagate = False
