"""
=============================================================================
ERROR RENDERING MIDDLEWARE
=============================================================================

An ErrorMiddleware that turns a pending error into a response, registered
LAST so it sees errors from everything before it:

    app.use(json())
    app.use("/api", api)
    app.use(error_handler())

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHAT THE CLIENT SEES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Client wants JSON (Accept: application/json or a JSON request):   │
    │       {"error": {"status": 404, "message": "No such user"}}         │
    │                                                                      │
    │   Otherwise, plain text:                                            │
    │       No such user                                                  │
    │                                                                      │
    │   Message shown:                                                    │
    │       HTTPError(expose=True)  → its message (4xx default)           │
    │       anything else           → reason phrase ("Internal Server     │
    │                                 Error"), unless expose_errors       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

expose_errors defaults to "not production": in development the message
of any exception is shown, in production only HTTPError messages marked
as exposable.

=============================================================================
"""

import logging
from typing import Any, Optional

from ..errors import error_status
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import status_phrase
from .base import ErrorMiddleware, Next


logger = logging.getLogger(__name__)


def _wants_json(req: Request) -> bool:
    accept = req.get("accept", "") or ""
    return req.is_json or "application/json" in accept or req.xhr


class ErrorRenderer(ErrorMiddleware):
    """Render pending errors as JSON or text."""

    def __init__(self, expose_errors: Optional[bool] = None):
        self.expose_errors = expose_errors

    @property
    def name(self) -> str:
        return "error_handler"

    def _expose(self, req: Request) -> bool:
        if self.expose_errors is not None:
            return self.expose_errors
        config = getattr(req.app, "config", None)
        return not (config is not None and config.is_production)

    def _message(self, err: Any, status: int, req: Request) -> str:
        if getattr(err, "expose", False) and isinstance(getattr(err, "message", None), str):
            return err.message
        if self._expose(req) and str(err):
            return str(err)
        return status_phrase(status)

    def __call__(self, err: Any, req: Request, res: Response, next: Next) -> None:
        # Too late to render anything: let the pipeline end the response
        if res.headers_sent:
            next(err)
            return

        status = error_status(err) if isinstance(err, BaseException) else 500
        if status >= 500:
            logger.error(
                "Error while handling %s %s", req.method, req.path,
                exc_info=err if isinstance(err, BaseException) else None,
            )

        message = self._message(err, status, req)
        res.status(status).remove("Content-Length")

        if _wants_json(req):
            payload = {"status": status, "message": message}
            if self._expose(req) and isinstance(err, BaseException):
                payload["type"] = type(err).__name__
            res.remove("Content-Type").json({"error": payload})
        else:
            res.remove("Content-Type").type("text").send(message)


def error_handler(expose_errors: Optional[bool] = None) -> ErrorRenderer:
    """
    Create the error-rendering middleware.

    Args:
        expose_errors: Show exception messages to clients. None (default)
                       means "unless config.env is production".
    """
    return ErrorRenderer(expose_errors=expose_errors)
