"""
Structured logging configuration with audit trail support for agentbox.

Provides JSON-formatted logging with OpenTelemetry correlation, and routes
the agentbox.audit logger to its own JSON lines file when file logging is on.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

from opentelemetry import trace


_RESERVED_ATTRIBUTES = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message", "taskName"
})


class StructuredFormatter(logging.Formatter):
    """JSON formatter with OpenTelemetry trace correlation."""

    def __init__(self, include_trace: bool = True, extra_fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.include_trace = include_trace
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add trace context if available
        if self.include_trace:
            current_span = trace.get_current_span()
            if current_span and current_span.is_recording():
                span_context = current_span.get_span_context()
                log_entry.update({
                    "trace_id": format(span_context.trace_id, "032x"),
                    "span_id": format(span_context.span_id, "016x")
                })

        # Add exception information
        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRIBUTES:
                log_entry[key] = value

        # Add configured extra fields
        log_entry.update(self.extra_fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def build_logging_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Build a dictConfig mapping from logging settings.

    Console output goes to stderr so command output on stdout stays parseable.
    """
    log_level = config.get("level", "INFO").upper()
    log_format = config.get("format", "structured")
    log_to_file = config.get("log_to_file", False)

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
                "include_trace": config.get("include_trace", True),
                "extra_fields": {
                    "service": "agentbox",
                    "environment": config.get("environment", "development")
                }
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "structured" if log_format == "structured" else "simple",
                "stream": sys.stderr
            }
        },
        "loggers": {
            "agentbox": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            "agentbox.audit": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "opentelemetry": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }

    if log_to_file:
        log_dir = Path(config.get("directory", "~/.agentbox/logs")).expanduser()
        max_bytes = config.get("max_file_size", 10 * 1024 * 1024)  # 10MB

        logging_config["handlers"]["application_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "structured",
            "filename": str(log_dir / "agentbox.log"),
            "maxBytes": max_bytes,
            "backupCount": config.get("backup_count", 5)
        }
        logging_config["handlers"]["audit_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "INFO",
            "formatter": "structured",
            "filename": str(log_dir / "audit.jsonl"),
            "maxBytes": max_bytes,
            "backupCount": config.get("backup_count", 10)
        }

        loggers = logging_config["loggers"]
        loggers["agentbox"]["handlers"].append("application_file")
        loggers["opentelemetry"]["handlers"].append("application_file")
        # Audit events go to their own file only
        loggers["agentbox.audit"]["handlers"] = ["audit_file"]

    return logging_config


def setup_logging(config: Dict[str, Any]) -> None:
    """Setup structured logging configuration."""
    if config.get("log_to_file", False):
        log_dir = Path(config.get("directory", "~/.agentbox/logs")).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(config))

    logger = logging.getLogger("agentbox.logging")
    logger.debug("Structured logging initialized", extra={
        "config": {
            "level": config.get("level", "INFO").upper(),
            "format": config.get("format", "structured"),
            "log_to_file": config.get("log_to_file", False)
        }
    })
