"""
Logging setup for the ToolChat backend.

Production writes one JSON object per line; development gets a colored
single-line console format. Chat turn logs carry the conversation and user
ids, lifted to top-level JSON keys so a whole turn can be grepped by id.
"""

import json
import logging
import sys
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from toolchat.core.config import settings

# Fields a turn may attach through ContextLogger / ``extra=``
TURN_FIELDS = ("conversation_id", "user_id", "tool", "fallback", "request_id")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "openai")

HEALTH_PATHS = {"/health", f"{settings.API_V1_STR}/health"}


class JSONFormatter(logging.Formatter):
    def __init__(self, service_name: str = "toolchat-backend"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "service": self.service_name,
            "env": settings.ENVIRONMENT,
        }
        for field in TURN_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        http = getattr(record, "http", None)
        if http:
            entry["http"] = http

        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }
        return json.dumps(entry, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Console format for development: time | level | logger | [conv=.. user=..] message"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        stamp = time.strftime("%H:%M:%S", time.localtime(record.created))

        tags = []
        conversation_id = getattr(record, "conversation_id", None)
        if conversation_id is not None:
            tags.append(f"conv={conversation_id}")
        tool = getattr(record, "tool", None)
        if tool:
            tags.append(f"tool={tool}")
        prefix = f"[{' '.join(tags)}] " if tags else ""

        line = f"{color}{stamp} {record.levelname:<7}{self.RESET} {record.name}: {prefix}{record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += f"\n{color}  {record.exc_info[0].__name__}: {record.exc_info[1]}{self.RESET}"
        return line


class ContextLogger:
    """
    Wraps a stdlib logger and attaches turn context to every record.

    Usage:
        logger = get_logger(__name__)
        logger.set_context(conversation_id=12, user_id=1)
        logger.info("Turn started")
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._context: Dict[str, Any] = {}

    def set_context(self, **fields: Any) -> None:
        self._context.update({k: v for k, v in fields.items() if v is not None})

    def log(self, level: int, msg: str, **kwargs: Any) -> None:
        extra = {**self._context, **kwargs.pop("extra", {})}
        self._logger.log(level, msg, extra=extra, **kwargs)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, **kwargs)


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name; DEBUG when settings.DEBUG, else INFO
        json_logs: Force JSON output on or off; defaults to on in production
    """
    level = (level or ("DEBUG" if settings.DEBUG else "INFO")).upper()
    if json_logs is None:
        json_logs = settings.ENVIRONMENT.lower() == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_logs else ColoredFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("toolchat").debug(
        f"Logging ready (level={level}, json={json_logs}, env={settings.ENVIRONMENT})"
    )


class RequestLoggingMiddleware:
    """
    ASGI middleware: one log line per request with status and duration.

    The request id is taken from an incoming ``X-Request-ID`` header when
    present, stored on ``scope["state"]`` and echoed on the response.
    """

    def __init__(self, app):
        self.app = app
        self.logger = logging.getLogger("toolchat.http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        request_id = headers.get(b"x-request-id", b"").decode("latin-1") or uuid.uuid4().hex[:8]
        scope.setdefault("state", {})["request_id"] = request_id

        started = time.perf_counter()
        status_code = 500

        async def send_with_request_id(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message.setdefault("headers", [])
                message["headers"] = list(message["headers"]) + [(b"x-request-id", request_id.encode("latin-1"))]
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            path = scope.get("path", "/")
            if path not in HEALTH_PATHS:
                duration_ms = (time.perf_counter() - started) * 1000
                method = scope.get("method", "-")
                self.logger.log(
                    logging.WARNING if status_code >= 400 else logging.INFO,
                    f"{method} {path} -> {status_code} ({duration_ms:.1f}ms)",
                    extra={
                        "request_id": request_id,
                        "http": {"method": method, "path": path, "status": status_code, "duration_ms": round(duration_ms, 1)},
                    },
                )
