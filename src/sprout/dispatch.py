"""
=============================================================================
DISPATCH PIPELINE
=============================================================================

Runs one request through a router tree. Two phases:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. RESOLUTION                                                      │
    │     Walk the router tree once and flatten everything that applies   │
    │     to (method, path) into an ordered list of LAYERS.               │
    │                                                                      │
    │  2. EXECUTION                                                       │
    │     Drive a cursor over the layers in a loop. Each handler decides  │
    │     where the cursor goes next via next() / next(err) / finishing   │
    │     the response.                                                   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
RESOLUTION
=============================================================================

At each router level:

    1. Middleware entries, in registration order. An entry applies when
       it has no prefix or its prefix matches the leading segments of the
       path. Handlers become layers; mounted routers are resolved
       recursively against the path with the prefix stripped, and their
       layers are inserted IN PLACE.
    2. Then the FIRST route of this level matching method + path adds one
       layer per handler in its chain, carrying the route's params.

    app.use(logger())                         ─┐
    app.use("/api", api)                       │   GET /api/users/7
        api.use(auth)                          │
        api.get("/users/:id", load, show)      │   layers:
    app.get("/api/users/:id", fallback)        │     logger    params {}
    app.use_error(render_error)               ─┘     auth      params {}
                                                     load      params {id: 7}
                                                     show      params {id: 7}
                                                     render_error  (error)
                                                     fallback  params {id: 7}

=============================================================================
EXECUTION STATE MACHINE
=============================================================================

    ┌──────────┐  invoke layer   ┌──────────────────┐
    │ RUNNING  │ ──────────────► │ HANDLER_INVOKED  │
    └──────────┘                 └──────────────────┘
        ▲   ▲                        │    │     │
        │   └───── next() ───────────┘    │     │ res.send()/end()/...
        │                                  │     ▼
        │                 next(err) /      │  ┌───────────┐
        │                 raise            │  │ FINALIZED │
        │                                  ▼  └───────────┘
        │                      ┌───────────────────┐  ▲
        └── next() from ────── │ ERROR_PROPAGATING │  │ out of layers:
            error handler      └───────────────────┘  │ default 404/500

While RUNNING, error handlers are skipped. While ERROR_PROPAGATING,
ordinary handlers are skipped.

The loop never recurses: next() only RECORDS the decision, and the loop
acts on it once the handler returns. A deep middleware stack therefore
cannot overflow the Python stack.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, Optional
import logging

from .errors import error_status
from .http.request import EMPTY_PARAMS, Request
from .http.response import Response
from .http.status_codes import HTTPStatus, status_phrase
from .middleware.base import SKIP_ROUTE, Handler
from .routing.pattern import Params, match, match_prefix
from .routing.router import Route, Router


logger = logging.getLogger(__name__)


class DispatchState(Enum):
    RUNNING = "running"
    HANDLER_INVOKED = "handler_invoked"
    ERROR_PROPAGATING = "error_propagating"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class Layer:
    """
    One step of a resolved request: a handler plus the view of the
    request it should see.
    """

    handler: Handler
    params: Mapping[str, Optional[str]] = field(default_factory=lambda: EMPTY_PARAMS)
    base_url: str = ""               # mount point the handler lives under
    relative_path: str = "/"         # path with base_url stripped
    route: Optional[Route] = None    # set for route handlers

    @property
    def is_error(self) -> bool:
        return self.handler.is_error


# =============================================================================
# RESOLUTION
# =============================================================================

def resolve(
    router: Router,
    method: str,
    path: str,
    case_sensitive: bool = False,
    strict: bool = False,
) -> List[Layer]:
    """
    Flatten everything in ``router``'s tree that applies to a request.

    Deterministic: the same tree and the same (method, path) always
    produce the same layers.
    """
    layers: List[Layer] = []
    _resolve_level(router, method.upper(), path, "", {}, case_sensitive, strict, layers)
    return layers


def _resolve_level(
    router: Router,
    method: str,
    path: str,
    base_url: str,
    inherited: Params,
    case_sensitive: bool,
    strict: bool,
    layers: List[Layer],
) -> None:
    # ─────────────────────────────────────────────────────────────────────
    # Middleware stack (and mounted routers), in registration order
    # ─────────────────────────────────────────────────────────────────────
    for entry in router.middleware:
        if entry.prefix is None:
            params, entry_base, entry_path = inherited, base_url, path
        else:
            prefix_match = match_prefix(entry.prefix, path, case_sensitive)
            if prefix_match is None:
                continue
            params = {**inherited, **prefix_match.params}
            entry_base = base_url + prefix_match.base_path
            entry_path = prefix_match.remaining_path

        if entry.is_mount:
            _resolve_level(
                entry.target, method, entry_path, entry_base, params,
                case_sensitive, strict, layers,
            )
        else:
            layers.append(Layer(
                handler=entry.target,
                params=MappingProxyType(dict(params)) if params else EMPTY_PARAMS,
                base_url=entry_base,
                relative_path=entry_path,
            ))

    # ─────────────────────────────────────────────────────────────────────
    # First matching route of this level
    # ─────────────────────────────────────────────────────────────────────
    for route in router.routes:
        if not route.matches_method(method):
            continue
        route_params = match(route.pattern, path, case_sensitive, strict)
        if route_params is None:
            continue

        frozen = MappingProxyType({**inherited, **route_params})
        for handler in route.handlers:
            layers.append(Layer(
                handler=handler,
                params=frozen,
                base_url=base_url,
                relative_path=path,
                route=route,
            ))
        break


# =============================================================================
# EXECUTION
# =============================================================================

class _Continuation:
    """
    The ``next`` callable handed to ONE handler invocation.

    It only records what the handler asked for; DispatchContext.run()
    acts on it after the handler returns.
    """

    __slots__ = ("_context", "_handler_name", "_open", "called", "error", "skip_route")

    def __init__(self, context: "DispatchContext", handler_name: str):
        self._context = context
        self._handler_name = handler_name
        self._open = True
        self.called = False
        self.error: Any = None
        self.skip_route = False

    def __call__(self, err: Any = None) -> None:
        if not self._open or self._context.response.finalized:
            logger.warning(
                "Ignoring stale next() from %s: the pipeline has already moved on",
                self._handler_name,
            )
            return
        if self.called:
            logger.warning("Ignoring repeated next() from %s", self._handler_name)
            return

        self.called = True
        if isinstance(err, str) and err == SKIP_ROUTE:
            self.skip_route = True
        else:
            self.error = err

    def fail(self, exc: BaseException) -> None:
        """A raised exception overrides whatever next() recorded."""
        self.called = True
        self.skip_route = False
        self.error = exc

    def close(self) -> None:
        self._open = False


class DispatchContext:
    """
    Per-request execution state: layers, cursor, pending error, state.

    Created by dispatch() and discarded when the response is finalized.
    """

    def __init__(
        self,
        router: Router,
        layers: List[Layer],
        request: Request,
        response: Response,
        case_sensitive: bool = False,
        strict: bool = False,
    ):
        self.router = router
        self.layers = layers
        self.request = request
        self.response = response
        self.case_sensitive = case_sensitive
        self.strict = strict

        self.cursor = 0
        self.error: Any = None
        self.state = DispatchState.RUNNING

    def run(self) -> Response:
        """Walk the layers until the response is finalized."""
        response = self.response

        while not response.finalized:
            layer = self._next_layer()
            if layer is None:
                self._respond_default()
                break

            continuation = self._invoke(layer)
            if response.finalized:
                break

            if not continuation.called:
                if layer.is_error:
                    # The error is still pending: fall back to the default
                    # error response
                    logger.warning(
                        "%s returned without handling the error or calling next()",
                        layer.handler.name,
                    )
                    self._respond_error()
                    break
                # Returned without next() and without finishing: send what
                # has been written so far
                logger.debug("%s returned without calling next(); ending response", layer.handler.name)
                response.end()
                break

            self._advance(layer, continuation)

        self.state = DispatchState.FINALIZED
        return response

    def _next_layer(self) -> Optional[Layer]:
        """Move the cursor to the next layer of the right kind."""
        want_error = self.error is not None
        while self.cursor < len(self.layers):
            layer = self.layers[self.cursor]
            self.cursor += 1
            if layer.is_error == want_error:
                return layer
        return None

    def _invoke(self, layer: Layer) -> _Continuation:
        request = self.request
        request.params = layer.params
        request.base_url = layer.base_url
        request.relative_path = layer.relative_path

        continuation = _Continuation(self, layer.handler.name)
        self.state = DispatchState.HANDLER_INVOKED
        try:
            if layer.is_error:
                layer.handler(self.error, request, self.response, continuation)
            else:
                layer.handler(request, self.response, continuation)
        except Exception as exc:
            if self.response.finalized:
                logger.exception(
                    "%s raised after the response was sent; ignoring", layer.handler.name
                )
            else:
                continuation.fail(exc)
        finally:
            continuation.close()
        return continuation

    def _advance(self, layer: Layer, continuation: _Continuation) -> None:
        if continuation.skip_route:
            if layer.route is not None:
                while (self.cursor < len(self.layers)
                       and self.layers[self.cursor].route is layer.route):
                    self.cursor += 1
        elif continuation.error is not None:
            self.error = continuation.error
        else:
            # next() without an error: any pending error counts as handled
            self.error = None

        if self.error is not None:
            self.state = DispatchState.ERROR_PROPAGATING
        else:
            self.state = DispatchState.RUNNING

    # =========================================================================
    # DEFAULT RESPONSES
    # =========================================================================
    #
    #   Out of layers, no error    → 404 "Cannot GET /path"
    #                                (OPTIONS with known routes → 200 + Allow)
    #   Out of layers, error       → error's own 4xx/5xx status, else 500
    #
    # =========================================================================

    def _respond_default(self) -> None:
        if self.error is not None:
            self._respond_error()
        else:
            self._respond_not_found()

    def _respond_not_found(self) -> None:
        request, response = self.request, self.response
        if response.headers_sent:
            response.end()
            return
        response.remove("Content-Length")

        if request.method == "OPTIONS":
            allowed = self.router.allowed_methods(request.path, self.case_sensitive, self.strict)
            if allowed:
                allow = ", ".join(allowed)
                response.status(HTTPStatus.OK).set("Allow", allow).type("text").end(allow)
                return

        response.status(HTTPStatus.NOT_FOUND).type("text").end(
            f"Cannot {request.method} {request.path}"
        )

    def _respond_error(self) -> None:
        request, response, err = self.request, self.response, self.error
        status = error_status(err) if isinstance(err, BaseException) else 500

        if status >= 500:
            logger.error(
                "Unhandled error while dispatching %s %s: %r",
                request.method, request.path, err,
                exc_info=err if isinstance(err, BaseException) else None,
            )
        else:
            logger.info("%s %s failed with %d: %s", request.method, request.path, status, err)

        if response.headers_sent:
            response.end()
            return
        response.remove("Content-Length")

        message = getattr(err, "message", None)
        if not (getattr(err, "expose", False) and isinstance(message, str)):
            message = status_phrase(status)
        response.status(status).type("text").end(message)


def dispatch(
    router: Router,
    request: Request,
    response: Response,
    case_sensitive: bool = False,
    strict: bool = False,
) -> Response:
    """
    Resolve and execute one request against a router tree.

    Always returns the (finalized) response; handler exceptions never
    escape.
    """
    layers = resolve(router, request.method, request.path, case_sensitive, strict)
    context = DispatchContext(router, layers, request, response, case_sensitive, strict)
    return context.run()
