"""構造化ログの設定.

各モジュールは logging.getLogger(__name__) で取得したロガーに出力し、
出力形式はここで root ロガーにまとめて設定する。
"""

import logging
from typing import Any

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "storefront"


class StorefrontJsonFormatter(JsonFormatter):
    """サービス名・レベル・ロガー名を常に含める JSON フォーマッタ."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = SERVICE_NAME
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """root ロガーのハンドラを差し替える. log_format は "json" か "text"."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        formatter: logging.Formatter = StorefrontJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
