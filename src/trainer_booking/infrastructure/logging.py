"""Structured JSON logging for the Trainer Booking System."""

import logging
import logging.handlers
import json
import sys
import uuid
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar
from pathlib import Path

SERVICE_NAME = "trainer-booking-system"

# Correlation ID of the request being handled, if any
correlation_id_context: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'message', 'exc_info',
    'exc_text', 'stack_info', 'correlation_id', 'taskName'
}

_QUIET_LOGGERS = ('sqlalchemy.engine', 'sqlalchemy.pool', 'aiosqlite', 'uvicorn.access')


class CorrelationIDFilter(logging.Filter):
    """Stamp each record with the current request's correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_context.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; fields passed via ``extra`` go under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, 'correlation_id', '-'),
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def configure_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> None:
    """Send JSON logs to stdout, and to a rotating file when log_dir is set."""
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            filename=Path(log_dir) / f"{SERVICE_NAME}.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        ))

    correlation_filter = CorrelationIDFilter()
    json_formatter = JSONFormatter()
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(correlation_filter)
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_context.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_context.set(None)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_with_extra(logger: logging.Logger, level: int, message: str, **extra) -> None:
    """Log a message with extra fields."""
    logger.log(level, message, extra=extra)


def log_database_operation(logger: logging.Logger, operation: str, table: str, **extra) -> None:
    """Log a database operation."""
    log_with_extra(
        logger,
        logging.DEBUG,
        f"Database {operation}: {table}",
        db_operation=operation,
        db_table=table,
        **extra
    )


def log_pin_verification(logger: logging.Logger, client_id: int, success: bool, **extra) -> None:
    """Log a PIN verification attempt."""
    level = logging.INFO if success else logging.WARNING
    status = "successful" if success else "failed"
    log_with_extra(
        logger,
        level,
        f"PIN verification {status} for client {client_id}",
        auth_client_id=client_id,
        auth_success=success,
        **extra
    )


def log_business_rule_violation(logger: logging.Logger, rule: str, details: str, **extra) -> None:
    """Log a business rule violation."""
    log_with_extra(
        logger,
        logging.WARNING,
        f"Business rule violation: {rule} - {details}",
        business_rule=rule,
        violation_details=details,
        **extra
    )


def log_booking_transition(
    logger: logging.Logger,
    booking_id: int,
    from_status: str,
    to_status: str,
    **extra
) -> None:
    """Log a booking status transition."""
    log_with_extra(
        logger,
        logging.INFO,
        f"Booking {booking_id}: {from_status} -> {to_status}",
        booking_id=booking_id,
        from_status=from_status,
        to_status=to_status,
        **extra
    )
