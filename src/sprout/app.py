"""
=============================================================================
APPLICATION
=============================================================================

The App is the ROOT router plus global configuration and the per-request
entry point:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Transport (WSGI bridge, test client, socket server, ...)          │
    │        │                                                             │
    │        │  Request("GET", "/api/users/7", headers=...)               │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  App.handle(request)                                         │   │
    │   │    1. seal the router tree (first request only)              │   │
    │   │    2. resolve layers for (method, path)                      │   │
    │   │    3. run the dispatch loop                                  │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   Response  (status_code, header_items(), body)                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
USAGE
=============================================================================

    from sprout import App, Request
    from sprout.middleware import json, logger

    app = App()
    app.use(logger())
    app.use(json())

    @app.get("/users/:id")
    def show_user(req, res, next):
        res.json({"id": req.params["id"]})

    res = app.handle(Request("GET", "/users/42"))
    res.status_code   → 200
    res.body          → b'{"id":"42"}'

=============================================================================
"""

import logging
from typing import Any, Dict, Optional

from .config import AppConfig
from .dispatch import dispatch
from .errors import RouterSealedError
from .http.request import Request
from .http.response import Response
from .routing.router import Router


logger = logging.getLogger(__name__)


# Settings that change how the frozen route table is interpreted
_ROUTING_SETTINGS = {"case_sensitive_routing", "strict_routing"}


def _setting_key(name: str) -> str:
    """Accept Express-style names: "strict routing" → "strict_routing"."""
    return name.strip().lower().replace(" ", "_").replace("-", "_")


class App(Router):
    """
    A Sprout application.

    Everything a Router can do (get/post/use/mount/...) works on the app
    directly; the app adds configuration and handle().

    =========================================================================
    SETTINGS
    =========================================================================

    Known settings map onto AppConfig fields; anything else is stored in
    app.settings for the application's own use:

        app.enable("strict routing")        # config.strict_routing = True
        app.set("json spaces", 2)           # config.json_spaces = 2
        app.set("title", "My API")          # app.settings["title"]
        app.get("title")                    # "My API"

    =========================================================================
    """

    def __init__(self, config: Optional[AppConfig] = None, name: Optional[str] = None):
        super().__init__(name=name)
        self.config = config or AppConfig()
        self.config.validate()
        self.settings: Dict[str, Any] = {}
        self.locals: Dict[str, Any] = {}

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def set(self, name: str, value: Any) -> "App":
        """Assign a setting. Returns self for chaining."""
        key = _setting_key(name)
        if key not in AppConfig.field_names():
            self.settings[name] = value
            return self

        if key in _ROUTING_SETTINGS and self.sealed:
            raise RouterSealedError(f"Cannot change {name!r} after the app started dispatching")

        previous = getattr(self.config, key)
        setattr(self.config, key, value)
        try:
            self.config.validate()
        except ValueError:
            setattr(self.config, key, previous)
            raise
        return self

    def setting(self, name: str, default: Any = None) -> Any:
        """Read a setting (config field or custom value)."""
        key = _setting_key(name)
        if key in AppConfig.field_names():
            return getattr(self.config, key)
        return self.settings.get(name, default)

    def get(self, pattern: str, *handlers: Any, name: Optional[str] = None):
        """
        Register a GET route, or read a setting.

        With a single argument that is not a path, this reads a setting
        instead of registering a decorator:

            app.get("/users")(handler)     # route decorator
            app.get("title")               # setting lookup
        """
        if not handlers and name is None and not pattern.startswith(("/", "*")):
            return self.setting(pattern)
        return super().get(pattern, *handlers, name=name)

    def enable(self, name: str) -> "App":
        return self.set(name, True)

    def disable(self, name: str) -> "App":
        return self.set(name, False)

    def enabled(self, name: str) -> bool:
        return bool(self.setting(name))

    def disabled(self, name: str) -> bool:
        return not self.enabled(name)

    # =========================================================================
    # LOGGING
    # =========================================================================

    def setup_logging(self) -> None:
        """
        Configure stdlib logging for the application.

        Uses the same line format for framework and access logs:
            2026-01-01 12:00:00,000 [INFO] sprout.access: GET /users 200 ...
        """
        logging.basicConfig(
            level=getattr(logging, self.config.log_level.upper()),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("sprout").setLevel(self.config.log_level.upper())

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def handle(self, request: Request, response: Optional[Response] = None) -> Response:
        """
        Dispatch one request and return the finalized response.

        The first call seals the whole router tree. Handler exceptions never
        escape: every request yields a Response (404/500 by default).

        Args:
            request: The request built by the transport
            response: Optional pre-built response (e.g. from a test harness)

        Returns:
            The finalized Response
        """
        if not self.sealed:
            self.seal()
            logger.debug("Router tree sealed: %d routes", len(self.describe_routes()))

        if response is None:
            response = Response(app=self)
        elif response.app is None:
            response.app = self
        request.app = self

        if response.finalized:
            logger.warning("handle() called with a response that was already sent")
        elif self.config.x_powered_by:
            response.set("X-Powered-By", "Sprout")

        return dispatch(
            self,
            request,
            response,
            case_sensitive=self.config.case_sensitive_routing,
            strict=self.config.strict_routing,
        )
