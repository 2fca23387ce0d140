"""Centralized logging utilities for the entity registry.

This module provides:
- Logging configuration from RegistryConfig
- Safe preview utilities for values that end up in log lines
- Structured logging with identifier / caller context
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import LogLevel, RegistryConfig

# Record attributes the formatter never copies into the structured payload
_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "identifier", "caller",
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a safe, length-bounded preview of a value for logging.

    - Converts any value to a single-line string
    - Truncates to the specified limit
    - Normalizes whitespace

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated single-line string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple, set, frozenset)):
        try:
            s = json.dumps(
                sorted(value) if isinstance(value, (set, frozenset)) else value,
                default=str,
                ensure_ascii=False,
            )
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


class RegistryFormatter(logging.Formatter):
    """Formatter that includes registry context and optional JSON output.

    This formatter:
    - Extracts ``identifier`` and ``caller`` from log records (if available)
    - Formats logs as JSON for structured logging, or plain text
    - Includes safe previews of extra fields
    """

    def __init__(
        self,
        include_context: bool = True,
        json_format: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.include_context = include_context
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        identifier = getattr(record, "identifier", None)
        caller = getattr(record, "caller", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            if identifier:
                log_data["identifier"] = identifier
            if caller is not None:
                log_data["caller"] = safe_preview(caller, limit=80)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        if identifier:
            parts.append(f"identifier={identifier}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class RegistryLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds identifier and caller context to log records.

    Usage:
        logger = get_registry_logger(__name__)
        logger.info("Vote cast", identifier="InventoryServer", caller=user)
    """

    def __init__(
        self,
        logger: logging.Logger,
        identifier: Optional[str] = None,
        caller: Any = None,
    ):
        super().__init__(logger, {})
        self.identifier = identifier
        self.caller = caller

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        identifier = kwargs.pop("identifier", self.identifier)
        caller = kwargs.pop("caller", self.caller)

        extra = kwargs.get("extra", {})
        if identifier:
            extra["identifier"] = identifier
        if caller is not None:
            extra["caller"] = caller
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[RegistryConfig] = None,
    json_format: Optional[bool] = None,
    service_name: Optional[str] = None,
) -> None:
    """Configure logging for a process hosting the registry.

    Args:
        config: RegistryConfig instance (if None, loads from environment)
        json_format: Force JSON output; defaults to ``config.log_json``
        service_name: Optional logger name to set to the same level
    """
    if config is None:
        from .config import load_registry_config_from_env

        config = load_registry_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        RegistryFormatter(
            include_context=True,
            json_format=config.log_json if json_format is None else json_format,
        )
    )
    root_logger.addHandler(console_handler)

    if service_name:
        logging.getLogger(service_name).setLevel(log_level)


def get_registry_logger(
    name: str,
    identifier: Optional[str] = None,
    caller: Any = None,
) -> RegistryLoggerAdapter:
    """Get a logger adapter carrying registry context.

    Args:
        name: Logger name (typically __name__)
        identifier: Optional identifier to include in all logs
        caller: Optional caller to include in all logs

    Returns:
        RegistryLoggerAdapter instance
    """
    logger = logging.getLogger(name)
    return RegistryLoggerAdapter(logger, identifier=identifier, caller=caller)


__all__ = [
    "safe_preview",
    "RegistryFormatter",
    "RegistryLoggerAdapter",
    "setup_logging",
    "get_registry_logger",
]
