from __future__ import annotations

import json
import logging
from logging import LogRecord
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace


class InterceptHandler(logging.Handler):
    """Forward stdlib records (SQLAlchemy, alembic) to Loguru under their logger name."""

    def emit(self, record: LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(stdlib_logger=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _build_payload(message: "logger.Message", metadata: Dict[str, Any]) -> Dict[str, Any]:
    record = message.record
    span = trace.get_current_span()
    span_context = span.get_span_context() if span else None

    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "message": record["message"],
        "logger": record["name"],
        "service": metadata.get("service_name", "unknown"),
        "environment": metadata.get("environment", "unknown"),
        "version": metadata.get("version", "unknown"),
    }

    if span_context and span_context.is_valid:
        payload["trace_id"] = f"{span_context.trace_id:032x}"
        payload["span_id"] = f"{span_context.span_id:016x}"

    if record["extra"]:
        payload.update(record["extra"])

    if record["exception"] is not None:
        exc_type = record["exception"].type
        payload["error_type"] = exc_type.__name__ if exc_type else None

    return payload


def _serialize_log(message: "logger.Message", metadata: Dict[str, Any]) -> None:
    print(json.dumps(_build_payload(message, metadata), default=str))


def configure_logging(
    *,
    service_name: str = "korken-loyalty",
    environment: str = "development",
    version: str = "0.1.0",
    level: str | int = "INFO",
) -> None:
    """Configure Loguru + stdlib logging with structured JSON output.

    The engine is a library, so nothing calls this implicitly; hosting
    processes (workers, scripts) opt in once at startup.
    """

    logger.remove()
    metadata = {"service_name": service_name, "environment": environment, "version": version}
    logger.add(
        lambda message: _serialize_log(message, metadata),
        level=level,
        backtrace=False,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
