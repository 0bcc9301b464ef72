"""
=============================================================================
SPROUT EXCEPTIONS
=============================================================================

Every exception the framework raises derives from SproutError, so
application code can catch "anything Sprout complained about" in one place.

=============================================================================
WHEN EACH ERROR HAPPENS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR TIMELINE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   STARTUP (registration time) - fatal, never caught by dispatch     │
    │   ─────────────────────────────────────────────────────────────     │
    │     PatternError         app.get("/files/*/x", h)                   │
    │     MountError           router.use("/loop", router)                │
    │     RouterSealedError    app.get(...) after the first request       │
    │                                                                      │
    │   REQUEST TIME - always caught by the pipeline                      │
    │   ─────────────────────────────────────────────────────────────     │
    │     HTTPError            raise HTTPError(403) inside a handler      │
    │     ResponseFinalized    res.send() twice                           │
    │     <anything else>      bugs in handlers → next(err) → 500         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Optional


class SproutError(Exception):
    """Base class for all framework errors."""


class PatternError(SproutError):
    """
    Raised when a path pattern cannot be compiled.

    Surfaced at registration time so a broken route table fails the
    application at startup instead of on the first unlucky request:

        >>> app.get("/api/:version(v1|v2/status", handler)
        PatternError: Invalid path pattern '/api/:version(v1|v2/status':
                      unterminated constraint group
    """

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid path pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class RouterSealedError(SproutError):
    """Raised when a router tree is modified after it started dispatching."""


class MountError(SproutError):
    """Raised when mounting a router would create a cycle in the tree."""


class ResponseFinalizedError(SproutError):
    """Raised when writing to a response that has already been sent."""


class HTTPError(SproutError):
    """
    An error that carries the HTTP status it should be answered with.

    Handlers raise it (or pass it to ``next``) to pick an error status
    without writing the response themselves:

        @app.get("/admin")
        def admin(req, res, next):
            if not req.get("authorization"):
                raise HTTPError(401)

    Args:
        status_code: HTTP status to respond with (4xx or 5xx).
        message: Human-readable message. Defaults to the reason phrase.
        expose: Whether the message is safe to show to clients.
                Defaults to True for 4xx and False for 5xx.
    """

    def __init__(
        self,
        status_code: int = 500,
        message: Optional[str] = None,
        expose: Optional[bool] = None,
    ):
        # Imported here because sprout.http imports this module
        from .http.status_codes import status_phrase

        self.status_code = int(status_code)
        self.message = message or status_phrase(self.status_code)
        self.expose = expose if expose is not None else self.status_code < 500
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"HTTPError({self.status_code}, {self.message!r})"


def error_status(err: BaseException) -> int:
    """
    Pick the response status for an error.

    Anything carrying a 4xx/5xx ``status_code`` (HTTPError, or a
    collaborator's own exception type) keeps it; everything else is a 500.
    """
    status = getattr(err, "status_code", None)
    if isinstance(status, int) and 400 <= status < 600:
        return status
    return 500
