"""
=============================================================================
ROUTER
=============================================================================

A Router owns two ordered tables:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ROUTER                                                             │
    │                                                                      │
    │  Middleware stack (use / use_error / mount), registration order:    │
    │  ┌────────────────────────────────────────────────────────────────┐ │
    │  │  (every path)   logger()                                       │ │
    │  │  /api           json()                                         │ │
    │  │  /api           <Router api>        ← mounted sub-router       │ │
    │  │  (every path)   error_handler()     ← ErrorHandler             │ │
    │  └────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  Route table (get / post / ... / all), registration order:          │
    │  ┌────────────────────────────────────────────────────────────────┐ │
    │  │  GET   /               → home                                  │ │
    │  │  GET   /users/me       → current_user                          │ │
    │  │  GET   /users/:id      → load_user, show_user                  │ │
    │  │  ALL   /health         → health                                │ │
    │  └────────────────────────────────────────────────────────────────┘ │
    └─────────────────────────────────────────────────────────────────────┘

Routers nest: a Router passed to use() is MOUNTED under the prefix and
sees paths with that prefix stripped. App is simply the root Router.

=============================================================================
PRECEDENCE
=============================================================================

Registration order always wins over specificity:

    app.get("/users/:id", show_user)
    app.get("/users/me", current_user)     # never reached for GET /users/me

Register the specific route first. How the two tables are combined for a
request is described in sprout.dispatch.

=============================================================================
SEALING
=============================================================================

A router tree is mutable while the application is being assembled and
read-only once it starts serving. App.handle() seals the whole tree on the
first request; registering anything afterwards raises RouterSealedError.
Concurrent requests can then walk the tree without locks.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple, Union
import logging

from ..errors import MountError, RouterSealedError
from ..middleware.base import Handler, to_error_handler, to_handler
from .pattern import CompiledPattern, compile_pattern, match, match_prefix, normalize_prefix


logger = logging.getLogger(__name__)


ALL = "ALL"
METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


@dataclass(frozen=True)
class Route:
    """
    A registered route: method + compiled pattern + handler chain.

        app.get("/users/:id", load_user, show_user, name="user")

        Route(
            method="GET",
            pattern=<CompiledPattern '/users/:id'>,
            handlers=(<Handler load_user>, <Handler show_user>),
            name="user",
        )
    """

    method: str
    pattern: CompiledPattern
    handlers: Tuple[Handler, ...]
    name: Optional[str] = None

    @property
    def path(self) -> str:
        return self.pattern.source

    def matches_method(self, method: str) -> bool:
        return self.method == ALL or self.method == method.upper()


@dataclass(frozen=True)
class MiddlewareEntry:
    """
    One entry of a router's middleware stack.

    ``prefix`` is None when the entry applies to every path. ``target`` is
    either a tagged Handler or a mounted Router.
    """

    prefix: Optional[CompiledPattern]
    target: Union[Handler, "Router"]

    @property
    def is_mount(self) -> bool:
        return isinstance(self.target, Router)

    @property
    def prefix_source(self) -> str:
        return self.prefix.source if self.prefix is not None else "/"


def _join_paths(base: str, path: str) -> str:
    """Join a mount prefix and a child path: ("/api/", "/users") → "/api/users"."""
    if path in ("", "/"):
        return base.rstrip("/") or "/"
    return base.rstrip("/") + "/" + path.lstrip("/")


class Router:
    """
    Ordered route table plus ordered middleware stack.

    ==========================================================================
    REGISTRATION API
    ==========================================================================

        router = Router()

        # Direct form: returns the Route
        router.get("/users", list_users)
        router.post("/users", validate, create_user, name="create_user")

        # Decorator form: returns the function unchanged
        @router.get("/users/:id")
        def show_user(req, res, next):
            res.json({"id": req.params["id"]})

        # Middleware and mounting
        router.use(auth)                      # every path
        router.use("/admin", require_admin)   # /admin and below
        router.use("/v2", v2_router)          # mount
        router.use_error(render_error)        # error handler

    ==========================================================================
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self._routes: List[Route] = []
        self._middleware: List[MiddlewareEntry] = []
        self._named_routes: Dict[str, Route] = {}
        self._sealed = False

    def __repr__(self) -> str:
        label = f" {self.name}" if self.name else ""
        return (
            f"<{self.__class__.__name__}{label} routes={len(self._routes)} "
            f"middleware={len(self._middleware)}>"
        )

    @property
    def routes(self) -> Tuple[Route, ...]:
        return tuple(self._routes)

    @property
    def middleware(self) -> Tuple[MiddlewareEntry, ...]:
        return tuple(self._middleware)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def _ensure_mutable(self) -> None:
        if self._sealed:
            raise RouterSealedError(
                f"{self!r} is sealed: routes and middleware must be registered "
                f"before the first request is dispatched"
            )

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        method: str,
        pattern: str,
        *handlers: Any,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        The verb helpers (get, post, ...) are convenience wrappers around
        this method.

        Args:
            method: HTTP method, or "ALL" to match any method
            pattern: Path pattern ("/users/:id")
            *handlers: One or more handlers, run in order
            name: Optional route name for url_for()

        Returns:
            The registered Route

        Raises:
            PatternError: The pattern does not compile
            RouterSealedError: The router already serves requests
        """
        self._ensure_mutable()

        method = method.upper()
        if method != ALL and method not in METHODS:
            raise ValueError(f"Unsupported HTTP method: {method!r}")
        if not handlers:
            raise ValueError(f"Route {method} {pattern} needs at least one handler")

        route = Route(
            method=method,
            pattern=compile_pattern(pattern),
            handlers=tuple(to_handler(handler) for handler in handlers),
            name=name,
        )
        self._routes.append(route)

        if name:
            self._named_routes[name] = route

        logger.debug("Registered route %s %s (%d handlers)", method, pattern, len(route.handlers))
        return route

    def route(
        self,
        method: str,
        pattern: str,
        *handlers: Any,
        name: Optional[str] = None,
    ) -> Union[Route, Callable[[Callable], Callable]]:
        """
        Register a route directly, or return a decorator when no handlers
        are given.

            router.route("GET", "/users", list_users)      # → Route

            @router.route("GET", "/users")                  # decorator
            def list_users(req, res, next):
                ...
        """
        if handlers:
            return self.add_route(method, pattern, *handlers, name=name)

        def decorator(func: Callable) -> Callable:
            self.add_route(method, pattern, func, name=name)
            return func  # unchanged, so decorators stack
        return decorator

    def get(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a GET route."""
        return self.route("GET", pattern, *handlers, name=name)

    def post(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a POST route."""
        return self.route("POST", pattern, *handlers, name=name)

    def put(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a PUT route."""
        return self.route("PUT", pattern, *handlers, name=name)

    def delete(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a DELETE route."""
        return self.route("DELETE", pattern, *handlers, name=name)

    def patch(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a PATCH route."""
        return self.route("PATCH", pattern, *handlers, name=name)

    def head(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a HEAD route. GET routes do NOT answer HEAD requests."""
        return self.route("HEAD", pattern, *handlers, name=name)

    def options(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register an OPTIONS route."""
        return self.route("OPTIONS", pattern, *handlers, name=name)

    def all(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """Register a route that matches every HTTP method."""
        return self.route(ALL, pattern, *handlers, name=name)

    # =========================================================================
    # MIDDLEWARE AND MOUNTING
    # =========================================================================
    #
    #   use(mw)                       prefix "/" (every path)
    #   use("/api", mw1, mw2)         /api, /api/..., never /apis
    #   use("/api", api_router)       mount: api_router sees "/users"
    #                                 for a request to "/api/users"
    #
    # =========================================================================

    @staticmethod
    def _split_prefix(args: Tuple[Any, ...]) -> Tuple[Optional[str], Tuple[Any, ...]]:
        if args and isinstance(args[0], str):
            return args[0], args[1:]
        return None, args

    def use(self, *args: Any) -> "Router":
        """
        Add middleware, error middleware or mounted routers.

        Args:
            *args: Optional prefix string followed by one or more targets
                   (functions, Middleware/ErrorMiddleware instances,
                   Handler/ErrorHandler values or Routers)

        Returns:
            Self for method chaining
        """
        self._ensure_mutable()
        prefix, targets = self._split_prefix(args)
        if not targets:
            raise ValueError("use() requires at least one handler or router")

        compiled = normalize_prefix(prefix)
        for target in targets:
            if isinstance(target, Router):
                self._check_mount(target)
                entry = MiddlewareEntry(compiled, target)
                logger.debug("Mounted %r at %s", target, entry.prefix_source)
            else:
                entry = MiddlewareEntry(compiled, to_handler(target))
                logger.debug("Added middleware %s at %s", entry.target.name, entry.prefix_source)
            self._middleware.append(entry)
        return self

    def use_error(self, *args: Any) -> "Router":
        """
        Add error handlers: ``fn(err, req, res, next)``.

            app.use_error(lambda err, req, res, next: res.status(500).send("oops"))
        """
        self._ensure_mutable()
        prefix, targets = self._split_prefix(args)
        if not targets:
            raise ValueError("use_error() requires at least one error handler")

        compiled = normalize_prefix(prefix)
        for target in targets:
            entry = MiddlewareEntry(compiled, to_error_handler(target))
            logger.debug("Added error handler %s at %s", entry.target.name, entry.prefix_source)
            self._middleware.append(entry)
        return self

    def mount(self, prefix: str, router: "Router") -> "Router":
        """Mount a sub-router under a prefix. Same as use(prefix, router)."""
        if not isinstance(router, Router):
            raise TypeError(f"mount() expects a Router, got {router!r}")
        return self.use(prefix, router)

    def static(self, prefix: str, root_dir: str, **options: Any) -> "Router":
        """
        Serve files from ``root_dir`` under ``prefix``.

            app.static("/assets", "./public", cache_max_age=3600)

        Options are those of sprout.middleware.static_files().
        """
        from ..middleware.static import static_files

        return self.use(prefix, static_files(root_dir, **options))

    # =========================================================================
    # TREE STRUCTURE
    # =========================================================================

    def children(self) -> Iterator["Router"]:
        """Directly mounted routers, in registration order."""
        for entry in self._middleware:
            if entry.is_mount:
                yield entry.target

    def _reaches(self, target: "Router") -> bool:
        """True if ``target`` is this router or mounted anywhere below it."""
        stack = [self]
        seen: Set[int] = set()
        while stack:
            router = stack.pop()
            if router is target:
                return True
            if id(router) in seen:
                continue
            seen.add(id(router))
            stack.extend(router.children())
        return False

    def _check_mount(self, child: "Router") -> None:
        # A cycle exists if this router is already reachable from the child
        if child._reaches(self):
            raise MountError(f"Mounting {child!r} into {self!r} would create a cycle")

    def seal(self) -> None:
        """Freeze this router and every router mounted below it."""
        stack = [self]
        while stack:
            router = stack.pop()
            if router._sealed:
                continue
            router._sealed = True
            stack.extend(router.children())

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def iter_routes(self, base: str = "") -> Iterator[Tuple[str, Route]]:
        """
        Yield ``(full_path, route)`` for every route in the tree, in the
        order dispatch considers them: mounted routers first, then this
        router's own routes.
        """
        for entry in self._middleware:
            if entry.is_mount:
                yield from entry.target.iter_routes(_join_paths(base, entry.prefix_source))
        for route in self._routes:
            yield (_join_paths(base, route.path) if base else route.path), route

    def describe_routes(self) -> List[Tuple[str, str, Optional[str]]]:
        """
        List ``(method, full_path, name)`` for every route in the tree.

        Example:
            [("GET", "/", None), ("GET", "/api/users/:id", "user")]
        """
        return [(route.method, path, route.name) for path, route in self.iter_routes()]

    def url_for(self, name: str, **params: Any) -> Optional[str]:
        """
        Generate the path of a named route (reverse routing).

            @api.get("/users/:id", name="user")
            ...
            app.use("/api", api)

            app.url_for("user", id=42)  → "/api/users/42"

        Returns:
            The path, or None if no route has that name

        Raises:
            ValueError: A required parameter is missing or invalid
        """
        route = self._named_routes.get(name)
        if route is not None:
            return route.pattern.build(**params)

        for entry in self._middleware:
            if not entry.is_mount:
                continue
            child_path = entry.target.url_for(name, **params)
            if child_path is None:
                continue
            base = entry.prefix.build(**params) if entry.prefix is not None else "/"
            return _join_paths(base, child_path)

        return None

    def allowed_methods(
        self,
        path: str,
        case_sensitive: bool = False,
        strict: bool = False,
    ) -> List[str]:
        """
        Methods that have a route matching ``path`` anywhere in the tree.

        Used to build the Allow header for unmatched OPTIONS requests.

            router.get("/users", ...); router.post("/users", ...)
            router.allowed_methods("/users")  → ["GET", "POST"]
        """
        methods: Set[str] = set()
        self._collect_methods(path, case_sensitive, strict, methods, set())
        if ALL in methods:
            return list(METHODS)
        return sorted(methods)

    def _collect_methods(
        self,
        path: str,
        case_sensitive: bool,
        strict: bool,
        methods: Set[str],
        visiting: Set[int],
    ) -> None:
        if id(self) in visiting:
            return
        visiting = visiting | {id(self)}

        for entry in self._middleware:
            if not entry.is_mount:
                continue
            if entry.prefix is None:
                entry.target._collect_methods(path, case_sensitive, strict, methods, visiting)
                continue
            prefix_match = match_prefix(entry.prefix, path, case_sensitive)
            if prefix_match is not None:
                entry.target._collect_methods(
                    prefix_match.remaining_path, case_sensitive, strict, methods, visiting
                )

        for route in self._routes:
            if match(route.pattern, path, case_sensitive, strict) is not None:
                methods.add(route.method)
