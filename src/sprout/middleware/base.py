"""
=============================================================================
HANDLER AND MIDDLEWARE INTERFACES
=============================================================================

Everything the dispatch pipeline runs is a Handler. There are exactly two
kinds, and the kind is a TAG chosen at registration, never guessed from
the function signature:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        HANDLER KINDS                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Handler         fn(req, res, next)                                │
    │                   Runs while no error is pending.                   │
    │                   Registered by get()/post()/use()/...              │
    │                                                                      │
    │   ErrorHandler    fn(err, req, res, next)                           │
    │                   Runs only while an error is pending.              │
    │                   Registered by use_error(), or by passing an       │
    │                   ErrorMiddleware instance to use().                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE next() CONTRACT
=============================================================================

    next()          continue with the next ordinary handler
                    (from an error handler: the error is considered
                    handled and ordinary handlers resume)
    next(err)       skip ordinary handlers, jump to the next error handler
    next("route")   skip the remaining handlers of the current route

    Handlers that want to finish the request just send a response
    (res.send / res.json / res.end / ...) and do not call next.

Unlike a wrapping "onion" chain, next() does NOT run the rest of the
chain before returning. It only records where the pipeline goes once the
current handler returns:

    def timing(req, res, next):
        start = time.monotonic()
        next()                          # returns immediately
        # the route handler has NOT run yet here

Middleware that needs to see the final response registers
res.on_finish(callback) instead (see logger()).

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional
import logging

from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# next() / next(err) / next("route")
Next = Callable[..., None]

HandlerFunc = Callable[[Request, Response, Next], Any]
ErrorHandlerFunc = Callable[[Any, Request, Response, Next], Any]

# Passed to next() to skip the rest of the current route's handler chain
SKIP_ROUTE = "route"


class Middleware(ABC):
    """
    Abstract base class for class-based middleware.

    =========================================================================
    MIDDLEWARE ANATOMY
    =========================================================================

        class RequireJSON(Middleware):
            def __call__(self, req, res, next):
                # ═══════════════════════════════════════════════════════
                # SHORT-CIRCUIT: answer without calling next()
                # ═══════════════════════════════════════════════════════
                if req.method == "POST" and not req.is_json:
                    res.status(415).send("Expected JSON")
                    return

                # ═══════════════════════════════════════════════════════
                # CONTINUE: let the next handler run
                # ═══════════════════════════════════════════════════════
                next()

        app.use(RequireJSON())

    =========================================================================
    """

    @abstractmethod
    def __call__(self, req: Request, res: Response, next: Next) -> None:
        """
        Process the request.

        Either finish the response, call next() to continue, or call
        next(err) / raise to hand over to error handlers.
        """

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__


class ErrorMiddleware(ABC):
    """
    Abstract base class for class-based error middleware.

    Instances passed to use() are registered as error handlers:

        class ReportErrors(ErrorMiddleware):
            def __call__(self, err, req, res, next):
                sentry.capture(err)
                next(err)               # keep propagating

        app.use(ReportErrors())
    """

    @abstractmethod
    def __call__(self, err: Any, req: Request, res: Response, next: Next) -> None:
        """Handle (or forward) a pending error."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


# =============================================================================
# TAGGED HANDLERS
# =============================================================================

def _callable_name(func: Callable) -> str:
    name = getattr(func, "name", None)
    if isinstance(name, str):
        return name
    return getattr(func, "__name__", type(func).__name__)


class Handler:
    """
    An ordinary handler: ``func(req, res, next)``.

    Wraps a plain function or a Middleware instance so the pipeline can
    tell it apart from an ErrorHandler without inspecting its signature.
    """

    is_error = False

    def __init__(self, func: Callable, name: Optional[str] = None):
        if not callable(func):
            raise TypeError(f"Handler must be callable, got {func!r}")
        self.func = func
        self.name = name or _callable_name(func)

    def __call__(self, req: Request, res: Response, next: Next) -> Any:
        return self.func(req, res, next)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


class ErrorHandler(Handler):
    """An error handler: ``func(err, req, res, next)``."""

    is_error = True

    def __call__(self, err: Any, req: Request, res: Response, next: Next) -> Any:  # type: ignore[override]
        return self.func(err, req, res, next)


def to_handler(target: Any) -> Handler:
    """
    Convert a use()/route target into a tagged Handler.

        plain function        → Handler
        Middleware instance   → Handler
        ErrorMiddleware       → ErrorHandler
        Handler/ErrorHandler  → unchanged
    """
    if isinstance(target, Handler):
        return target
    if isinstance(target, ErrorMiddleware):
        return ErrorHandler(target, name=target.name)
    if isinstance(target, Middleware):
        return Handler(target, name=target.name)
    if callable(target):
        return Handler(target)
    raise TypeError(f"Expected a handler function or middleware, got {target!r}")


def to_error_handler(target: Any) -> ErrorHandler:
    """Convert a use_error() target into an ErrorHandler."""
    if isinstance(target, ErrorHandler):
        return target
    if isinstance(target, (Handler, Middleware)):
        raise TypeError(f"{target!r} is an ordinary handler, not an error handler")
    if isinstance(target, ErrorMiddleware):
        return ErrorHandler(target, name=target.name)
    if callable(target):
        return ErrorHandler(target)
    raise TypeError(f"Expected an error handler function, got {target!r}")


def error_handler_function(func: ErrorHandlerFunc) -> ErrorHandler:
    """
    Decorator that tags a function as an error handler.

        @error_handler_function
        def on_error(err, req, res, next):
            res.status(500).send("oops")

        app.use(on_error)       # same as app.use_error(on_error)
    """
    return ErrorHandler(func)
