"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging.context import get_log_context
from core.security.redaction import sanitize_error_message, sanitize_url


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Messages and string fields are passed through credential redaction.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Retry / circuit tracking
        "event",
        "attempt",
        "attempts",
        "max_attempts",
        "delay_seconds",
        "duration_ms",
        "circuit_name",
        "circuit_state",
        "failure_count",
        "failure_threshold",
        "retry_after",
        # Errors
        "error_category",
        "error_type",
        "error_message",
        "reason",
        # API tracking
        "api_endpoint",
        "api_method",
        "http_status",
        # Provisioning
        "operation",
        "provisioning_state",
        "previous_state",
        "failure_kind",
        "template",
        "branch",
        "repository_url",
        "deleted",
        "context",
    ]

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["repository_url", "api_endpoint", "url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        """Sanitize value if it's a URL or free-text field."""
        if not isinstance(value, str):
            return value
        if key in self.URL_FIELDS:
            return sanitize_url(value)
        return sanitize_error_message(value, max_length=None)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with sanitized fields."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": sanitize_error_message(record.getMessage(), max_length=None),
        }

        # Inject context variables
        ctx = get_log_context()
        for key in ("domain", "stage", "run_id", "repository"):
            if ctx[key]:
                log_entry[key] = ctx[key]

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        if record.exc_info:
            log_entry["exception"] = sanitize_error_message(
                self.formatException(record.exc_info), max_length=None
            )

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

        if ctx["domain"]:
            parts.append(f"[{ctx['domain']}]")
        if ctx["repository"]:
            parts.append(f"[{ctx['repository']}]")

        prefix = " - ".join(parts)
        message = sanitize_error_message(record.getMessage(), max_length=None)

        state = getattr(record, "provisioning_state", None)
        if state:
            return f"{prefix} - ({state}) {message}"

        return f"{prefix} - {message}"
