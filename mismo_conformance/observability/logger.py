"""
Structured logging for export and import runs

Records are rendered as JSON through python-json-logger. Run context
(run_id, pack_id, stage) passed in ``extra`` lands as top-level keys so a
single run can be followed across stages; the text format shows it inline.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "mismo_conformance"

RUN_CONTEXT_FIELDS = ("run_id", "pack_id", "stage")

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(run_id)s %(stage)s] %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with timestamp, level, logger and source location"""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.module}:{record.funcName}"

        # Placeholders from the text format are not run context
        for field in RUN_CONTEXT_FIELDS:
            if log_record.get(field) == "-":
                del log_record[field]


class RunContextFilter(logging.Filter):
    """Fill absent run context fields so the text format always renders"""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in RUN_CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, "-")
        return True


def _build_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return CustomJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure a logger writing to stderr.

    Args:
        name: Logger name
        level: Level name (defaults to env var LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT, then json)

    Returns:
        The configured logger
    """
    log_level = LOG_LEVELS.get((level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.addFilter(RunContextFilter())
    handler.setFormatter(_build_formatter(format_type or os.getenv("LOG_FORMAT", "json")))

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def reconfigure_loggers(prefix: str, level: str | None = None, format_type: str | None = None) -> None:
    """Re-apply level and format to every logger already created under a package prefix."""
    for name in list(logging.Logger.manager.loggerDict):
        if name == prefix or name.startswith(prefix + "."):
            setup_logger(name, level=level, format_type=format_type)


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Return a logger, configuring it on first use"""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


class log_operation:
    """
    Context manager logging the start, outcome and duration of a run stage

    Usage:
        with log_operation("preflight", logger=logger, run_id=run.run_id, stage="preflight"):
            report = preflight.validate(deal)
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **context):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.context = context
        self.start_time: float | None = None
        self.duration: float | None = None

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.debug(f"{self.operation_name} started", extra={"operation": self.operation_name, **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self.start_time
        extra = {"operation": self.operation_name, "duration_seconds": round(self.duration, 3), **self.context}

        if exc_type is None:
            self.logger.info(f"{self.operation_name} finished", extra=extra)
        else:
            self.logger.error(
                f"{self.operation_name} raised {exc_type.__name__}: {exc_val}",
                extra={**extra, "error_type": exc_type.__name__},
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
