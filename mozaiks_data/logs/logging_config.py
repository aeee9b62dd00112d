# ======================================================================
# FILE: mozaiks_data/logs/logging_config.py
# Unified setup for the data gateway: pretty console, rotating file,
# optional JSON lines, secret redaction and request context loggers.
# ======================================================================
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import re
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Optional

from mozaiks_data.config.settings import Settings

_DEFAULT_LOGS_DIR = Path(__file__).parent / "logs"

# Sensitive key substrings for redaction
_SENSITIVE_KEYS = {"api_key", "apikey", "authorization", "auth", "secret", "password", "token"}

RESERVED_LOG_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "stacklevel",
    "taskName",
}

# Request context keys surfaced inline by the console formatter.
CONTEXT_KEYS = ("correlation_id", "plugin_id", "organization_id", "collection_name", "operation")


def _redact(value: Any) -> Any:
    if value is None:
        return value
    if isinstance(value, str):
        if len(value) <= 8:
            return "***"
        return value[:4] + "***" + value[-4:]
    return value


def _filter_reserved_log_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data:
        return {}
    return {k: v for k, v in data.items() if k not in RESERVED_LOG_RECORD_KEYS}


def _maybe_redact_mapping(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data:
        return data
    redacted = {}
    for k, v in data.items():
        if any(sens in k.lower() for sens in _SENSITIVE_KEYS):
            redacted[k] = _redact(v)
        elif isinstance(v, dict):
            redacted[k] = _maybe_redact_mapping(v)
        else:
            redacted[k] = v
    return redacted


# ----------------------------------------------------------------------
# Message sanitization
# ----------------------------------------------------------------------
_JSON_SECRET_KV_RE = re.compile(
    r"(\b(?:api[_-]?key|authorization|secret|password|token|client[_-]?secret)\b\s*[:=]\s*[\"']?)([^\"'\s;]+)([\"']?)",
    re.IGNORECASE,
)
_BEARER_RE = re.compile(r"(Bearer\s+)([A-Za-z0-9._\-~+/=]+)", re.IGNORECASE)
# Mongo connection strings with credentials (plain and SRV)
_MONGO_RE = re.compile(r"(mongodb(?:\+srv)?://)([^:@/]+):([^@/]+)(@)", re.IGNORECASE)


def _sanitize_log_message(message: str) -> str:
    if not isinstance(message, str) or not message:
        return message
    # Bearer tokens first so the token, not the scheme word, is masked.
    msg = _BEARER_RE.sub(lambda m: m.group(1) + "***REDACTED***", message)
    msg = _JSON_SECRET_KV_RE.sub(lambda m: m.group(1) + "***REDACTED***" + m.group(3), msg)
    msg = _MONGO_RE.sub(lambda m: m.group(1) + "***:***" + m.group(4), msg)
    return msg


# ----------------------------------------------------------------------
# Production JSON Formatter
# ----------------------------------------------------------------------
class ProductionJSONFormatter(logging.Formatter):
    """Structured JSON logging for production systems"""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_log_message(record.getMessage()),
            "mod": record.module,
            "fn": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "trace": traceback.format_exception(*record.exc_info),
            }
        extras = {k: v for k, v in record.__dict__.items() if k not in RESERVED_LOG_RECORD_KEYS}
        if extras:
            base["extra"] = _maybe_redact_mapping(extras)
        return json.dumps(base, ensure_ascii=False, default=str)


# ----------------------------------------------------------------------
# Pretty console formatter for developers
# ----------------------------------------------------------------------
_LEVEL_COLORS = {
    "DEBUG": "\x1b[38;5;244m",   # gray
    "INFO": "\x1b[38;5;39m",    # blue
    "WARNING": "\x1b[38;5;214m", # orange
    "ERROR": "\x1b[38;5;196m",   # red
    "CRITICAL": "\x1b[48;5;196m\x1b[97m", # white on red
}
_RESET = "\x1b[0m"


class PrettyConsoleFormatter(logging.Formatter):
    """Human-friendly console formatter with colors and file context.

    Format:  HH:MM:SS.mmm [LEVEL] logger - msg | ctx  (file.py:123 func)
    """

    def __init__(self, no_color: Optional[bool] = None):
        super().__init__(datefmt="%H:%M:%S")
        env_no_color = os.getenv("NO_COLOR", "0").lower() in ("1", "true", "yes")
        self.no_color = env_no_color if no_color is None else bool(no_color)

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = record.levelname
        color = _LEVEL_COLORS.get(level, "") if not self.no_color else ""
        reset = _RESET if color else ""
        msg = _sanitize_log_message(record.getMessage())
        extras = []
        for k in CONTEXT_KEYS:
            v = getattr(record, k, None)
            if v is not None:
                extras.append(f"{k}={v}")
        extra_str = f" | {' '.join(extras)}" if extras else ""
        base = (
            f"{ts} [{color}{level:>5}{reset}] {record.name} - {msg}{extra_str}"
            f"  ({record.filename}:{record.lineno} {record.funcName})"
        )
        if record.exc_info:
            base += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return base


# Global flag to prevent duplicate logging setup
_logging_initialized = False


def resolve_logs_dir(settings: Settings) -> Path:
    path = Path(settings.logs_base_dir).expanduser() if settings.logs_base_dir else _DEFAULT_LOGS_DIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(
    settings: Settings,
    *,
    file_logging: bool = True,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure the root logger with a console handler and one rotating file."""
    global _logging_initialized
    if _logging_initialized:
        return
    _logging_initialized = True

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(ProductionJSONFormatter() if settings.logs_as_json else PrettyConsoleFormatter())
    root.addHandler(ch)

    logs_dir = None
    if file_logging:
        logs_dir = resolve_logs_dir(settings)
        fh = logging.handlers.RotatingFileHandler(
            logs_dir / "mozaiks_data.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(ProductionJSONFormatter() if settings.logs_as_json else PrettyConsoleFormatter(no_color=True))
        root.addHandler(fh)

    for noisy in ("motor", "pymongo", "uvicorn.access", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "logs_dir": str(logs_dir) if logs_dir else None,
            "files_as_json": settings.logs_as_json,
            "log_level": settings.log_level,
        },
    )


def reset_logging_state():
    """Reset logging initialization state for testing purposes"""
    global _logging_initialized; _logging_initialized = False


# Context logger -----------------------------------------------------
class ContextLogger:
    def __init__(self, base: logging.Logger, ctx: Dict[str, Any]):
        self._base = base
        self._ctx = _filter_reserved_log_keys(ctx)

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._ctx)

    def _log(self, lvl, msg, *args, **extra):
        exc_info = extra.pop("exc_info", None)
        merged = _filter_reserved_log_keys({**self._ctx, **extra})
        log_kwargs: Dict[str, Any] = {"extra": _maybe_redact_mapping(merged)}
        if exc_info is not None:
            log_kwargs["exc_info"] = exc_info
        self._base.log(lvl, msg, *args, **log_kwargs)

    def info(self, msg, *args, **extra):
        self._log(logging.INFO, msg, *args, **extra)

    def debug(self, msg, *args, **extra):
        self._log(logging.DEBUG, msg, *args, **extra)

    def warning(self, msg, *args, **extra):
        self._log(logging.WARNING, msg, *args, **extra)

    def error(self, msg, *args, **extra):
        self._log(logging.ERROR, msg, *args, **extra)

    def exception(self, msg, *args, **extra):
        extra.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **extra)

    def with_context(self, **more):
        return ContextLogger(self._base, _filter_reserved_log_keys({**self._ctx, **more}))


def get_request_logger(
    plugin_id: str | None = None,
    organization_id: str | None = None,
    collection_name: str | None = None,
    *,
    base_logger: logging.Logger | None = None,
    **context,
) -> ContextLogger:
    ctx = {
        k: v
        for k, v in {
            "plugin_id": plugin_id,
            "organization_id": organization_id,
            "collection_name": collection_name,
        }.items()
        if v
    }
    ctx.update({k: v for k, v in context.items() if v is not None})
    logger = base_logger or logging.getLogger("mozaiks_data.requests")
    return ContextLogger(logger, ctx)


# Operation timing ---------------------------------------------------
@contextmanager
def log_operation(logger: ContextLogger, operation_name: str, **context):
    start = perf_counter()
    op_ctx = {"operation": operation_name, **context}
    logger.debug(f"Starting {operation_name}", **op_ctx)
    try:
        yield logger
        dur = perf_counter() - start
        logger.info(f"Completed {operation_name}", **op_ctx, duration_seconds=dur, status="success")
    except Exception as e:
        dur = perf_counter() - start
        logger.warning(
            f"Failed {operation_name}: {e}",
            **op_ctx,
            duration_seconds=dur,
            status="error",
            error_type=type(e).__name__,
        )
        raise
