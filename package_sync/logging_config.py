"""
Logging Configuration — Severity-tagged output for unattended CI runs.

Provides consistent logging across all modules with:
- Human-readable output for local runs
- JSON output (machine-readable)
- GitHub Actions workflow commands, so warnings and errors show up
  as annotations on the run

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: text, json, github (default: github under Actions, else text)

## Usage

    from package_sync.logging_config import setup_logging, Severity, log_event

    setup_logging()  # Call once at startup
    log_event(logger, Severity.SUCCESS, "Pushed sync branch", target="app-two")
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


class Severity(str, Enum):
    """Severity of a log event."""

    DEBUG = "debug"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def level(self) -> int:
        return _LEVELS[self]

    @classmethod
    def from_level(cls, levelno: int) -> "Severity":
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= SUCCESS:
            return cls.SUCCESS
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: SUCCESS,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}

_ICONS = {
    Severity.DEBUG: "·",
    Severity.INFO: "•",
    Severity.SUCCESS: "✓",
    Severity.WARNING: "⚠",
    Severity.ERROR: "✗",
}

Payload = Union[str, Mapping[str, Any]]


def format_event(severity: Severity, payload: Payload) -> str:
    """
    Render one event as a single line of text.

    ``payload`` is either a plain message or a mapping with a ``message``
    key plus context fields, rendered as ``key=value`` pairs:

        >>> format_event(Severity.SUCCESS, {"message": "pushed", "target": "app"})
        '✓ pushed (target=app)'
    """
    if isinstance(payload, str):
        return f"{_ICONS[severity]} {payload}"

    fields = dict(payload)
    message = str(fields.pop("message", ""))
    context = ", ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
    if context:
        return f"{_ICONS[severity]} {message} ({context})"
    return f"{_ICONS[severity]} {message}"


def log_event(
    logger: logging.Logger,
    severity: Severity,
    message: str,
    **context: Any,
) -> None:
    """Log ``message`` at ``severity`` with context fields attached."""
    logger.log(
        severity.level,
        format_event(severity, {"message": message, **context}),
        extra={"context": context},
    )


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {"ts": "...", "level": "...", "logger": "...", "message": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": Severity.from_level(record.levelno).value,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = {k: str(v) for k, v in context.items()}

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanFormatter(logging.Formatter):
    """
    Human-readable log formatter for local runs.

    Output format:
    12:34:56 INFO    [orchestrator   ] Message
    """

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[37m",     # White
        "SUCCESS": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.now().strftime("%H:%M:%S")

        level = record.levelname
        if sys.stderr.isatty():
            color = self.COLORS.get(level, "")
            level = f"{color}{level:7}{self.RESET}"
        else:
            level = f"{level:7}"

        module = record.name.split(".")[-1][:15]
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"

        return f"{time_str} {level} [{module:15}] {msg}"


class GitHubActionsFormatter(logging.Formatter):
    """
    Emit GitHub Actions workflow commands.

    Warnings and errors become ``::warning::`` / ``::error::`` annotations,
    debug lines use ``::debug::``, everything else is printed as-is.
    """

    COMMANDS = {
        Severity.DEBUG: "debug",
        Severity.WARNING: "warning",
        Severity.ERROR: "error",
    }

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"

        command = self.COMMANDS.get(Severity.from_level(record.levelno))
        if command is None:
            return msg
        # Workflow commands are single-line; escape per the Actions toolkit
        escaped = msg.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        return f"::{command}::{escaped}"


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
               Defaults to LOG_LEVEL env var or INFO.
        format_type: Output format (text, json, github).
                     Defaults to LOG_FORMAT env var, then "github" when
                     running inside GitHub Actions, else "text".
    """
    default_format = "github" if os.environ.get("GITHUB_ACTIONS") == "true" else "text"
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", default_format)).lower()

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        numeric_level = SUCCESS if log_level == "SUCCESS" else logging.INFO

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JSONFormatter()
    elif log_format == "github":
        formatter = GitHubActionsFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(numeric_level)
    root.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level}, format={log_format}"
    )
