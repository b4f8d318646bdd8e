import json
import logging
import time
from logging.config import dictConfig
from typing import Any

# Structured fields that must never reach a log sink verbatim
REDACTED_FIELDS = frozenset(
    {
        "access_key",
        "secret_key",
        "aws_access_key_id",
        "aws_secret_access_key",
        "api_key",
        "x_api_key",
        "authorization",
    }
)
REDACTED = "***"

QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "PIL")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the upload service.

    Records carry structured fields through ``extra={"extra": {...}}``.
    Startup messages go to a plain-text handler so they stay readable in a
    terminal. The AWS SDK and Pillow loggers are held at WARNING since their
    debug output includes request signatures and decoder chatter.
    """
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
                "plain": {"format": "%(levelname)s %(name)s: %(message)s"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "startup_console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "root": {"level": level.upper(), "handlers": ["console"]},
            "loggers": {
                "upload_agent.startup": {
                    "handlers": ["startup_console"],
                    "level": "INFO",
                    "propagate": False,
                },
                **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            },
        }
    )


def redact(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: REDACTED if key.lower().replace("-", "_") in REDACTED_FIELDS else value
        for key, value in fields.items()
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(redact(record.extra))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
