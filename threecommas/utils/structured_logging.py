"""
Structured JSON logging and credential redaction.

API keys, secrets and request signatures must never reach log output.
"""

import json
import logging
import re
from datetime import datetime, timezone


class CredentialRedactionFilter(logging.Filter):
    """
    Filter that redacts credentials from log records.

    Handles:
    - key=value / "key": "value" pairs for api_key, apikey, secret, signature
    - bare hex strings of 64+ chars (3Commas keys, secrets and HMAC digests)

    Usage:
        >>> handler = logging.StreamHandler()
        >>> handler.addFilter(CredentialRedactionFilter())
        >>> logger.addHandler(handler)
    """

    KEY_VALUE_PATTERN = re.compile(
        r'((?:api_key|apikey|secrets?|signature)["\']?\s*[:=]\s*["\']?)[^"\'\s,}&]+',
        re.IGNORECASE
    )
    HEX_PATTERN = re.compile(r'\b[0-9a-fA-F]{64,}\b')

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact credentials in place; never drops the record."""
        if record.msg:
            record.msg = self.redact(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self.redact(str(v))
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self.redact(str(arg))
                    for arg in record.args
                )

        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)

        return True

    def redact(self, text: str) -> str:
        """
        Redact all credential patterns from text.

        Args:
            text: Text to redact

        Returns:
            Text with credentials redacted
        """
        if not text:
            return text

        text = self.KEY_VALUE_PATTERN.sub(r'\1[REDACTED]', text)
        return self.HEX_PATTERN.sub('[REDACTED]', text)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


def configure_structured_logging(
    level: str = "INFO",
    enable_json: bool = True,
    enable_credential_redaction: bool = True
) -> None:
    """
    Configure structured logging on the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        enable_json: Use JSON formatter
        enable_credential_redaction: Add credential redaction filter
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler()

    if enable_credential_redaction:
        handler.addFilter(CredentialRedactionFilter())

    if enable_json:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
