"""
Logging setup for the BizHub backend.

Every record is stamped with the current request context (request id, user id,
role) by ``RequestContextFilter``. Development gets a colored one-line console
format; production console output and the rotating log file are JSON lines.
"""

import logging
import logging.handlers
import json
import os
from datetime import datetime, timezone
from contextvars import ContextVar

# Set by RequestLifecycleMiddleware and the auth dependency
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")
user_role_var: ContextVar[str] = ContextVar("user_role", default="-")

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "motor": logging.WARNING,
    "pymongo": logging.WARNING,
}


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.user_id = user_id_var.get()
        record.user_role = user_role_var.get()
        return True


def _payload(record: logging.LogRecord):
    # logger.info("msg", extra={"data": {...}})
    return getattr(record, "data", None) or None


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
            "role": getattr(record, "user_role", "-"),
            "message": record.getMessage(),
        }
        data = _payload(record)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        line = (
            f"{color}{record.levelname:<7}{self.RESET} {record.name} "
            f"[{getattr(record, 'request_id', '-')} {getattr(record, 'user_role', '-')}:{getattr(record, 'user_id', '-')}] "
            f"{record.getMessage()}"
        )
        data = _payload(record)
        if data:
            line += f"  | {data}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _file_handler(log_dir: str) -> logging.Handler:
    os.makedirs(log_dir, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, "bizhub.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    # the file keeps INFO+ as JSON whatever the console level
    handler.setLevel(logging.INFO)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging():
    env = os.getenv("ENV", "development").lower()
    level = os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO").upper()
    log_dir = os.getenv("LOG_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "logs"))

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(JSONFormatter() if env == "production" else DevFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    # reloads must not stack handlers
    root.handlers.clear()
    for handler in (console, _file_handler(log_dir)):
        handler.addFilter(RequestContextFilter())
        root.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    get_logger("app").info(f"Logging ready (env={env}, level={level}, dir={log_dir})")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"bizhub.{name}")
