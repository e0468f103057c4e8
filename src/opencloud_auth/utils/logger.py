# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

import logging
import os
import sys
from pathlib import Path
from typing import Any

from loguru import logger
from opentelemetry import trace

__all__ = ["logger", "configure_logging", "format_record"]


class InterceptHandler(logging.Handler):
    """
    Redirects standard logging messages to Loguru.
    Ensures libraries using standard logging (httpx, httpcore) are captured uniformly.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno  # type: ignore[assignment]

        # Find caller from where originated the logged message
        frame = logging.currentframe()
        depth = 2
        while frame and (frame.f_code.co_filename == logging.__file__ or frame.f_code.co_filename == __file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def trace_id_injector(record: dict[str, Any]) -> None:
    """
    Injects OpenTelemetry trace_id and span_id into the log record.
    Used as a patcher for Loguru.
    """
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx.is_valid:
        record["extra"]["trace_id"] = format(ctx.trace_id, "032x")
        record["extra"]["span_id"] = format(ctx.span_id, "016x")


TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
)


def format_record(record: dict[str, Any]) -> str:
    """
    Text format for stderr. Records bound to an HTTP request (`logger.bind(request_id=...)`)
    show its X-Request-ID so a line can be matched against server logs.
    """
    correlation = " | <magenta>{extra[request_id]}</magenta>" if "request_id" in record["extra"] else ""
    return TEXT_FORMAT + correlation + " - <level>{message}</level>\n{exception}"


def configure_logging() -> None:
    """
    Configures the logger based on environment variables.
    Call this to reload configuration if env vars change.

    Environment:
        OPENCLOUD_LOG_LEVEL: Minimum level (default INFO).
        OPENCLOUD_LOG_JSON: "true" for JSON records on stdout instead of text on stderr.
        OPENCLOUD_LOG_FILE: Optional path of a rotating JSON log file.
    """
    log_level = os.getenv("OPENCLOUD_LOG_LEVEL", "INFO").upper()
    log_json = os.getenv("OPENCLOUD_LOG_JSON", "false").lower() == "true"
    log_file = os.getenv("OPENCLOUD_LOG_FILE")

    try:
        logger.level(log_level)
    except ValueError:
        log_level = "INFO"

    logger.configure(handlers=[], patcher=trace_id_injector)

    if log_json:
        logger.add(sys.stdout, level=log_level, serialize=True)
    else:
        logger.add(sys.stderr, level=log_level, format=format_record)

    if log_file:
        # Skipped on read-only filesystems
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            logger.add(
                log_file,
                rotation="10 MB",
                retention="7 days",
                serialize=True,
                enqueue=True,
                level=log_level,
            )
        except (PermissionError, OSError):
            logger.warning(f"Cannot write log file {log_file}; file logging disabled.")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    numeric_level = logging.getLevelName(log_level)
    if isinstance(numeric_level, int):
        logging.getLogger().setLevel(numeric_level)
    else:
        logging.getLogger().setLevel(logging.INFO)


# Initialize on import
configure_logging()
