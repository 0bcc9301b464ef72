"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Emits one access-log line per request, once its response is finalized.

=============================================================================
WHY on_finish INSTEAD OF WRAPPING next()
=============================================================================

In Sprout, next() returns IMMEDIATELY; the rest of the pipeline runs
after the current handler has returned. So the logger cannot "call next
and then look at the response". It registers a finish callback instead:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   logger()     start timer, res.on_finish(emit), next()             │
    │      │                                                               │
    │      ▼                                                               │
    │   ...handlers...                                                     │
    │      │                                                               │
    │      ▼                                                               │
    │   res.send(...)  ──► finalize ──► emit(res)                         │
    │                                   GET /users 200 512 1.42ms          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The default 404/500 responses are finalized the same way, so they are
logged too.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from ..http.request import Request
from ..http.response import Response
from .base import Middleware, Next


# ═══════════════════════════════════════════════════════════════════════════
# LOGGER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════
# Namespaced logger for granular control:
#   logging.getLogger("sprout.access").setLevel(logging.INFO)
#   logging.getLogger("sprout.access").addHandler(file_handler)
# ═══════════════════════════════════════════════════════════════════════════

logger = logging.getLogger("sprout.access")


@dataclass
class RequestLog:
    """
    Structured log entry for a request.

    request_id:     Unique ID for correlation (also sent as X-Request-ID)
    method:         HTTP method (GET, POST, etc.)
    path:           Request path (e.g., /api/users)
    query:          Raw query string
    client_ip:      Client's IP address (proxy-aware)
    user_agent:     Browser/client identifier
    status_code:    HTTP response code
    content_length: Response body size in bytes
    duration_ms:    Request processing time
    timestamp:      When the request was received
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style access line."""
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Register it FIRST so every request is logged, including the ones
    rejected by later middleware:

        app.use(logger())                       # text lines
        app.use(logger(log_format="json"))      # one JSON object per line
        app.use(logger(skip_paths=["/health"])) # skip noisy probes
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    @property
    def name(self) -> str:
        return "logger"

    def __call__(self, req: Request, res: Response, next: Next) -> None:
        # UUIDv4 truncated to 8 chars for readability
        request_id = str(uuid.uuid4())[:8]
        start_time = time.monotonic()
        timestamp = time.strftime("%d/%b/%Y:%H:%M:%S %z")

        method, path, query = req.method, req.path, req.query_string

        if self.include_request_id:
            res.set("X-Request-ID", request_id)

        def emit(response: Response) -> None:
            if path in self.skip_paths:
                return
            entry = RequestLog(
                request_id=request_id,
                method=method,
                path=path,
                query=query,
                client_ip=req.ip,
                user_agent=req.get("user-agent") or "-",
                status_code=response.status_code,
                content_length=len(response.body),
                duration_ms=(time.monotonic() - start_time) * 1000,
                timestamp=timestamp,
            )
            if self.log_format == "json":
                logger.log(self.log_level, json.dumps(entry.to_dict()))
            else:
                logger.log(self.log_level, entry.to_text())

        res.on_finish(emit)
        next()


def logger_middleware(
    log_format: str = "text",
    include_request_id: bool = True,
    log_level: int = logging.INFO,
    skip_paths: Optional[Iterable[str]] = None,
) -> LoggingMiddleware:
    """Create access-logging middleware (exported as ``sprout.middleware.logger``)."""
    return LoggingMiddleware(
        log_format=log_format,
        include_request_id=include_request_id,
        log_level=log_level,
        skip_paths=skip_paths,
    )
