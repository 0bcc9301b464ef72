"""
=============================================================================
MIDDLEWARE
=============================================================================

Built-in middleware factories. Each returns an object usable with
app.use():

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ Factory              │ Effect                                       │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ logger()             │ One access-log line per response             │
    │ cors()               │ CORS headers, preflight answers              │
    │ json()               │ JSON body → req.body                         │
    │ urlencoded()         │ Form body → req.body                         │
    │ cookie_parser()      │ Cookie header → req.cookies                  │
    │ static_files(root)   │ Files under root                             │
    │ error_handler()      │ Pending error → JSON/text response           │
    └──────────────────────┴──────────────────────────────────────────────┘

    from sprout.middleware import logger, cors, json, error_handler

    app.use(logger())
    app.use(cors())
    app.use(json())
    ...
    app.use(error_handler())        # last

=============================================================================
"""

from .base import (
    ErrorHandler,
    ErrorMiddleware,
    Handler,
    Middleware,
    Next,
    error_handler_function,
    to_error_handler,
    to_handler,
)
from .body_parser import JSONBodyParser, URLEncodedBodyParser, json, urlencoded
from .cookies import CookieParser, cookie_parser
from .cors import CORSConfig, CORSMiddleware, cors
from .errors import ErrorRenderer, error_handler
from .logging import LoggingMiddleware, RequestLog, logger_middleware as logger
from .static import StaticFiles, static_files

__all__ = [
    "ErrorHandler",
    "ErrorMiddleware",
    "Handler",
    "Middleware",
    "Next",
    "error_handler_function",
    "to_error_handler",
    "to_handler",
    "JSONBodyParser",
    "URLEncodedBodyParser",
    "json",
    "urlencoded",
    "CookieParser",
    "cookie_parser",
    "CORSConfig",
    "CORSMiddleware",
    "cors",
    "ErrorRenderer",
    "error_handler",
    "LoggingMiddleware",
    "RequestLog",
    "logger",
    "static_files",
    "StaticFiles",
]
