"""
Structured Logging

One JSON object per line in production, a single readable line in DEBUG.
Every record carries the request's correlation ID; ``extra_data`` is
accepted by every level method. Customer e-mail addresses go through
``mask_email`` before they are logged.
"""
import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

_EMAIL_RE = re.compile(r"([A-Za-z0-9._%+\-])[A-Za-z0-9._%+\-]*@([A-Za-z0-9.\-]+\.[A-Za-z]{2,})")

_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "stripe", "google", "urllib3")


def mask_email(value: str) -> str:
    """Mask every e-mail address in a string: alice@example.com -> a***@example.com"""
    if not value:
        return value
    return _EMAIL_RE.sub(r"\1***@\2", value)


class StructuredLogger(logging.Logger):
    """Logger whose level methods take ``extra_data``; it ends up on the record"""

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1, extra_data: dict[str, Any] | None = None):
        if extra_data:
            extra = {**(extra or {}), "extra_data": extra_data}
        # one more frame so funcName/lineno point at the caller, not here
        super()._log(level, msg, args, exc_info=exc_info, extra=extra,
                     stack_info=stack_info, stacklevel=stacklevel + 1)


logging.setLoggerClass(StructuredLogger)


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        cid = correlation_id_var.get()
        if cid:
            entry["correlation_id"] = cid
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry["extra"] = extra_data
        # Decimal amounts, datetimes
        return json.dumps(entry, ensure_ascii=False, default=str)


class CorrelationIdFilter(logging.Filter):
    """Exposes the correlation ID to %-style format strings"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        return True


def setup_logging(level: str = "INFO", json_format: bool = True, app_name: str = "parcel-server") -> None:
    """Replace the root handlers with one stdout handler"""
    numeric_level = getattr(logging, level.upper())
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.addFilter(CorrelationIdFilter())
        handler.setFormatter(logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | {app_name} | [%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def set_correlation_id(correlation_id: str | None = None) -> str:
    cid = correlation_id or generate_correlation_id()
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str:
    """Current correlation ID; one is created if the request has none yet"""
    return correlation_id_var.get() or set_correlation_id()


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore[return-value]
