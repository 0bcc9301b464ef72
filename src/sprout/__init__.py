"""
=============================================================================
SPROUT: EXPRESS-STYLE ROUTING AND MIDDLEWARE FOR PYTHON
=============================================================================

Sprout is the in-process half of a web framework: it matches requests to
handlers and runs middleware chains. It does not open sockets; any
transport that can build a Request and read back a Response can host it.

=============================================================================
PACKAGE LAYOUT
=============================================================================

    sprout/
    ├── app.py              App: root router + config + handle()
    ├── dispatch.py         Layer resolution and the next() loop
    ├── config.py           AppConfig (routing flags, env, logging)
    ├── errors.py           SproutError hierarchy, HTTPError
    ├── routing/
    │   ├── pattern.py      "/users/:id" compiler and matcher
    │   └── router.py       Router, Route, mounting, url_for
    ├── http/
    │   ├── request.py      Request
    │   ├── response.py     Response (builder-style)
    │   ├── cookies.py      Cookie parsing / Set-Cookie
    │   ├── mime_types.py   Content-Type detection
    │   └── status_codes.py HTTPStatus
    └── middleware/
        ├── base.py         Handler / ErrorHandler / Middleware
        ├── body_parser.py  json(), urlencoded()
        ├── cookies.py      cookie_parser()
        ├── cors.py         cors()
        ├── errors.py       error_handler()
        ├── logging.py      logger()
        └── static.py       static_files()

=============================================================================
QUICK START
=============================================================================

    from sprout import App, Router, Request, HTTPError

    app = App()
    api = Router()

    @api.get("/users/:id(\\d+)", name="user")
    def show_user(req, res, next):
        if req.params["id"] == "0":
            raise HTTPError(404, "No such user")
        res.json({"id": int(req.params["id"])})

    app.use("/api", api)

    res = app.handle(Request("GET", "/api/users/7"))
    res.status_code         → 200
    app.url_for("user", id=7)  → "/api/users/7"

=============================================================================
"""

__version__ = "1.0.0"

from .app import App
from .config import AppConfig
from .dispatch import DispatchState, Layer, dispatch, resolve
from .errors import (
    HTTPError,
    MountError,
    PatternError,
    ResponseFinalizedError,
    RouterSealedError,
    SproutError,
)
from .http import Cookie, HTTPStatus, Request, Response
from .middleware.base import ErrorHandler, ErrorMiddleware, Handler, Middleware
from .routing import CompiledPattern, Route, Router, compile_pattern, match, match_prefix

__all__ = [
    "App",
    "AppConfig",
    "Router",
    "Route",
    "Request",
    "Response",
    "Cookie",
    "HTTPStatus",
    "Handler",
    "ErrorHandler",
    "Middleware",
    "ErrorMiddleware",
    "CompiledPattern",
    "compile_pattern",
    "match",
    "match_prefix",
    "DispatchState",
    "Layer",
    "dispatch",
    "resolve",
    "SproutError",
    "PatternError",
    "RouterSealedError",
    "MountError",
    "ResponseFinalizedError",
    "HTTPError",
    "__version__",
]
