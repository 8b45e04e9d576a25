"""Logging for the gateway process.

Package loggers write to ``gateway.log`` and the HTTP middleware writes one
JSON line per request to ``access.log``; both files rotate at midnight.
Credentials (bearer tokens, carrier secrets, API keys) are masked in logged
headers, query strings and bodies.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC, LOG_STDOUT.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Mapping
from dataclasses import dataclass
from logging.handlers import TimedRotatingFileHandler
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from .rate_limit import get_client_ip

#: Root of every module logger in the package.
APP_LOGGER_NAME = "tracking_assistant"
ACCESS_LOGGER_NAME = "uvicorn.access"

APP_LOG_FILE = "gateway.log"
ACCESS_LOG_FILE = "access.log"

#: Health and metrics polls are not access-logged.
UNLOGGED_PATHS = frozenset({"/api/health", "/api/metrics"})

SENSITIVE_FIELDS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "token",
        "access_token",
        "client_secret",
        "x-api-key",
    }
)
MASK = "***"


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "false").lower() == "true"


@dataclass(frozen=True)
class LoggingOptions:
    log_dir: str = "logs"
    level: int = logging.INFO
    json_format: bool = False
    request_bodies: bool = False
    retention_days: int = 7
    rotate_utc: bool = False
    stdout: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "LoggingOptions":
        env = os.environ if env is None else env
        level_name = env.get("LOG_LEVEL", "INFO").upper()
        return cls(
            log_dir=env.get("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            json_format=_flag(env, "LOG_JSON"),
            request_bodies=_flag(env, "LOG_REQUEST_BODIES"),
            retention_days=int(env.get("LOG_RETENTION_DAYS", "7")),
            rotate_utc=_flag(env, "LOG_ROTATE_UTC"),
            stdout=_flag(env, "LOG_STDOUT"),
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per record, used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _formatter(options: LoggingOptions) -> logging.Formatter:
    if options.json_format:
        return JsonFormatter()
    return logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")


def scrub(data: Any) -> Any:
    """Mask sensitive keys at any depth of a decoded JSON document."""

    if isinstance(data, Mapping):
        return {
            key: MASK if str(key).lower() in SENSITIVE_FIELDS else scrub(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [scrub(item) for item in data]
    return data


def _file_handler(
    options: LoggingOptions, filename: str, formatter: logging.Formatter
) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        os.path.join(options.log_dir, filename),
        when="midnight",
        backupCount=options.retention_days,
        utc=options.rotate_utc,
    )
    handler.setFormatter(formatter)
    return handler


async def _capture_body(request: Request) -> Any:
    """Read the body for logging and replay it to the route handler."""

    body = await request.body()

    async def replay() -> dict:  # pragma: no cover - internal
        return {"type": "http.request", "body": body, "more_body": False}

    request._receive = replay  # type: ignore[attr-defined]
    if not body:
        return None
    try:
        return scrub(json.loads(body))
    except ValueError:
        return body.decode("utf-8", errors="replace")


def _access_record(
    request: Request, response: Response, request_id: str, started: float
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "client_ip": get_client_ip(request),
        "headers": scrub(dict(request.headers)),
    }
    if request.query_params:
        record["query"] = scrub(dict(request.query_params))
    return record


def _install_access_logging(app: FastAPI) -> None:
    """Log every request outside UNLOGGED_PATHS and tag it with ``X-Request-Id``.

    An incoming ``X-Request-Id`` is reused, otherwise one is generated; the
    id is exposed as ``request.state.request_id`` and echoed on the response.
    """

    options = LoggingOptions.from_env()
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        body = await _capture_body(request) if options.request_bodies else None

        response = await call_next(request)

        record = _access_record(request, response, request_id, started)
        if body is not None:
            record["body"] = body
        response.headers["X-Request-Id"] = request_id
        access_logger.info(json.dumps(record, default=str))
        return response


def init_logging(app: FastAPI | None = None) -> None:
    """Attach file handlers to the package and access loggers.

    Package handlers are added once; access handlers are always replaced so
    uvicorn's console handler does not duplicate the JSON lines.
    """

    options = LoggingOptions.from_env()
    os.makedirs(options.log_dir, exist_ok=True)
    formatter = _formatter(options)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        app_logger.addHandler(_file_handler(options, APP_LOG_FILE, formatter))
        if options.stdout:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            app_logger.addHandler(console)
    app_logger.setLevel(options.level)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.addHandler(_file_handler(options, ACCESS_LOG_FILE, formatter))
    access_logger.setLevel(options.level)

    if app is not None:
        _install_access_logging(app)
