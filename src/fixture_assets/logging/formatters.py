"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fixture_assets.logging.context import get_log_context
from fixture_assets.security import sanitize_url


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove sensitive tokens before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        "asset_name",
        "source_url",
        "cache_path",
        "expected_hash",
        "actual_hash",
        "status",
        "http_status",
        "bytes_downloaded",
        "duration_ms",
        "error_category",
        "error_message",
        "assets_total",
        "assets_cached",
        "assets_downloaded",
        "assets_failed",
    ]

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["source_url", "url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return sanitize_url(value)
        return value

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with sanitized URLs."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_log_context()
        if ctx["run_id"]:
            log_entry["run_id"] = ctx["run_id"]
        if ctx["asset"]:
            log_entry["asset"] = ctx["asset"]

        # Source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes context when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]
        if ctx["run_id"]:
            parts.append(f"[{ctx['run_id']}]")

        prefix = " - ".join(parts)

        asset_name = getattr(record, "asset_name", None) or ctx["asset"]
        if asset_name:
            return f"{prefix} - [{asset_name}] {record.getMessage()}"

        return f"{prefix} - {record.getMessage()}"
