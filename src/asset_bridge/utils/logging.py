"""Logging configuration for Asset Bridge using structlog.

This module configures structured logging with human-readable console output
through rich and JSON output for the log file. It also installs the processor
that feeds the per-run log buffer.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler
from structlog.typing import EventDict, WrappedLogger

from asset_bridge import __version__
from asset_bridge.pipeline.run_log import active_buffer

APP_NAME = "asset-bridge"

# Keys added by processors, never part of a run-log line
_INTERNAL_KEYS = {"event", "level", "logger", "timestamp", "app", "version", "exc_info", "stack_info"}

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

_SENSITIVE_FIELDS = {
    "token",
    "password",
    "secret",
    "api_key",
    "apikey",
    "credential",
    "authorization",
    "auth_token",
    "access_token",
    "session",
    "authentication_key",
    "authenticationkey",
    "private_key",
    "salt",
    "encrypted",
}

_console_handler: RichHandler | None = None


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to log entries.

    Args:
        logger: The wrapped logger instance
        method_name: The name of the logger method called
        event_dict: The event dictionary to be logged

    Returns:
        EventDict: Modified event dictionary with app context
    """
    event_dict["app"] = APP_NAME
    event_dict["version"] = __version__
    return event_dict


def capture_run_log(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Copy the event into the run-log buffer bound to the current context.

    Context values are sanitized before they are rendered, so secrets never
    reach the run log stored in the target system.
    """
    buffer = active_buffer()
    if buffer is None:
        return event_dict

    level = event_dict.get("level", method_name)
    if not buffer.accepts(level):
        return event_dict

    context = sanitize_payload({k: v for k, v in event_dict.items() if k not in _INTERNAL_KEYS})
    parts = [str(event_dict.get("event", ""))]
    parts.extend(f"{key}={value}" for key, value in context.items())
    buffer.append(level, " ".join(parts))
    return event_dict


def _strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return _ANSI_PATTERN.sub("", text)


class JSONFileFormatter(logging.Formatter):
    """Custom formatter that outputs JSON for file logging.

    This formatter receives the already-rendered message from structlog and
    converts it to JSON for file output. ANSI escape codes are stripped from
    the event message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        message = _strip_ansi_codes(record.getMessage())

        log_entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": message,
            "app": APP_NAME,
            "version": __version__,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def configure_logging(
    level: str = "WARNING",
    log_format: str = "json",
    log_file: str | None = None,
    file_level: str | None = None,
    enable_colors: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default: WARNING
        log_format: File output format ('json' for production, 'console' for development).
                   Console output always uses human-readable format.
        log_file: Optional path to log file
        file_level: File log level (defaults to DEBUG for detailed file logs)
        enable_colors: Enable colored output in console mode

    Note:
        structlog itself lets every event through so the run-log buffer sees
        INFO events even when the console only shows warnings. The stdlib
        handlers do the level filtering.
    """
    global _console_handler

    console_level = getattr(logging, level.upper(), logging.WARNING)
    file_log_level = getattr(logging, (file_level or "DEBUG").upper(), logging.DEBUG)

    console = Console(stderr=True, no_color=not enable_colors)

    rich_handler = RichHandler(
        console=console,
        show_time=False,  # structlog already adds timestamps
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(console_level)
    _console_handler = rich_handler

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()

    root_logger.addHandler(rich_handler)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        capture_run_log,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=False),  # RichHandler handles coloring
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(file_log_level)

        if log_format == "json":
            file_handler.setFormatter(JSONFileFormatter())
        else:
            file_handler.setFormatter(logging.Formatter("%(message)s"))

        root_logger.addHandler(file_handler)


def set_console_level(level: str) -> bool:
    """Change console verbosity at runtime.

    Args:
        level: New level name (``warn`` is accepted for ``WARNING``)

    Returns:
        True if the level was applied, False if it was not recognised
    """
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    level_no = logging.getLevelName(name)
    if not isinstance(level_no, int):
        return False
    if _console_handler is not None:
        _console_handler.setLevel(level_no)
    return True


def get_console_level() -> str | None:
    """Current console level name, or None before logging is configured."""
    if _console_handler is None:
        return None
    return logging.getLevelName(_console_handler.level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)


def log_api_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    url: str,
    status_code: int | None = None,
    duration_ms: float | None = None,
    **extra: Any,
) -> None:
    """Log an API request with structured data.

    Args:
        logger: Logger instance
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
        **extra: Additional context to log
    """
    log_data = {
        "method": method,
        "url": url,
        **extra,
    }

    if status_code is not None:
        log_data["status_code"] = status_code

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    if status_code is None:
        logger.debug("api_request_started", **log_data)
    elif 200 <= status_code < 300:
        logger.debug("api_request_success", **log_data)
    elif 400 <= status_code < 500:
        logger.warning("api_request_client_error", **log_data)
    else:
        logger.info("api_request_server_error", **log_data)


def sanitize_payload(payload: dict[str, Any] | list[Any] | Any, max_depth: int = 10) -> Any:
    """Sanitize sensitive fields in payloads before logging.

    Recursively walks through the payload and replaces values of sensitive
    fields with "[REDACTED]" to prevent logging of secrets.

    Args:
        payload: The payload to sanitize (dict, list, or primitive)
        max_depth: Maximum recursion depth to prevent infinite loops

    Returns:
        Sanitized copy of the payload with sensitive values redacted
    """
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(payload, dict):
        sanitized = {}
        for key, value in payload.items():
            normalized = str(key).lower()
            if any(sensitive in normalized for sensitive in _SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, (dict, list)):
                sanitized[key] = sanitize_payload(value, max_depth - 1)
            else:
                sanitized[key] = value
        return sanitized

    elif isinstance(payload, list):
        return [sanitize_payload(item, max_depth - 1) for item in payload]

    else:
        return payload


def truncate_payload(payload: Any, max_size: int = 10000) -> str:
    """Convert payload to string and truncate if too large.

    Args:
        payload: The payload to convert and truncate
        max_size: Maximum size in characters

    Returns:
        String representation of payload, truncated if necessary
    """
    try:
        payload_str = json.dumps(payload, indent=2, default=str)
    except (TypeError, ValueError):
        payload_str = str(payload)

    if len(payload_str) > max_size:
        return payload_str[:max_size] + f"\n... [TRUNCATED - {len(payload_str)} total chars]"

    return payload_str


def should_log_payloads(logger: structlog.stdlib.BoundLogger, log_payloads_enabled: bool) -> bool:
    """Check if payload logging should be enabled.

    Payload logging requires the ``log_payloads`` flag and a logger that is
    enabled for DEBUG.
    """
    if not log_payloads_enabled:
        return False

    try:
        stdlib_logger = logger._logger  # type: ignore
        return stdlib_logger.isEnabledFor(logging.DEBUG)
    except AttributeError:
        return True
