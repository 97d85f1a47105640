"""Structured logging utilities with email address redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from pythonjsonlogger.json import JsonFormatter

from .config import Settings

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
REDACTED = "***@***"


class RedactingJsonFormatter(JsonFormatter):
    """JSON formatter that masks client and contact email addresses."""

    def process_log_record(self, log_record: Dict[str, Any]) -> Dict[str, Any]:
        data = super().process_log_record(log_record)
        for key, value in list(data.items()):
            data[key] = self._redact_value(value)
        return data

    def _redact_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return EMAIL_PATTERN.sub(REDACTED, value)
        if isinstance(value, dict):
            return {k: self._redact_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._redact_value(v) for v in value]
        return value


def configure_logging(settings: Settings) -> None:
    """Configure root logger with JSON output and redaction."""

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.captureWarnings(True)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler()
    fmt = RedactingJsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    handler.setFormatter(fmt)
    root_logger.addHandler(handler)
