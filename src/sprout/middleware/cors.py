"""
=============================================================================
CORS (Cross-Origin Resource Sharing) MIDDLEWARE
=============================================================================

Adds CORS headers so browsers allow cross-origin calls, and answers
preflight requests.

=============================================================================
CORS REQUEST FLOW
=============================================================================

    SIMPLE REQUEST (GET, HEAD, or POST with simple content types):

    ┌─────────┐                                          ┌─────────┐
    │ Browser │─────────── GET /api ────────────────────▶│  App    │
    │         │           Origin: https://app.com        │         │
    │         │◀──────────────────────────────────────────│         │
    │         │    Access-Control-Allow-Origin: *        │         │
    └─────────┘                                          └─────────┘

    PREFLIGHT REQUEST (non-simple requests):

    ┌─────────┐                                          ┌─────────┐
    │ Browser │─────────── OPTIONS /api ────────────────▶│  App    │
    │         │           Origin: https://app.com        │         │
    │         │           Access-Control-Request-Method: │         │
    │         │             DELETE                       │         │
    │         │◀──────────────────────────────────────────│         │
    │         │    204 No Content                        │         │
    │         │    Access-Control-Allow-Methods: DELETE  │         │
    │         │    Access-Control-Max-Age: 86400         │         │
    └─────────┘                                          └─────────┘

An OPTIONS request WITHOUT Access-Control-Request-Method is not a
preflight; it gets the CORS headers and continues down the pipeline
(where the default OPTIONS response lists the allowed methods).

=============================================================================
CORS HEADERS
=============================================================================

    ┌─────────────────────────────────┬───────────────────────────────────┐
    │ Header                          │ Purpose                           │
    ├─────────────────────────────────┼───────────────────────────────────┤
    │ Access-Control-Allow-Origin     │ Which origins can access          │
    │ Access-Control-Allow-Methods    │ Allowed HTTP methods (preflight)  │
    │ Access-Control-Allow-Headers    │ Allowed request headers           │
    │ Access-Control-Expose-Headers   │ Headers the browser may read      │
    │ Access-Control-Allow-Credentials│ Allow cookies/auth headers        │
    │ Access-Control-Max-Age          │ Preflight cache duration (s)      │
    └─────────────────────────────────┴───────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import HTTPStatus
from .base import Middleware, Next


@dataclass
class CORSConfig:
    """
    CORS configuration options.

    =========================================================================
    CONFIGURATION GUIDE
    =========================================================================

    DEVELOPMENT (permissive):
        CORSConfig()  # Defaults: allow everything

    PRODUCTION (restrictive):
        CORSConfig(
            allow_origins=["https://myapp.com"],
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"]
        )

    =========================================================================
    """

    # Origins allowed to make requests; ["*"] for any
    allow_origins: Optional[List[str]] = None

    # HTTP methods advertised in preflight responses
    allow_methods: Optional[List[str]] = None

    # Request headers the browser may send
    allow_headers: Optional[List[str]] = None

    # Response headers the browser may read (normally restricted)
    expose_headers: Optional[List[str]] = None

    # Allow credentials (cookies, authorization headers)
    # With allow_origins=["*"], the request's origin is echoed instead of "*"
    allow_credentials: bool = False

    # How long browsers may cache a preflight answer (seconds)
    max_age: int = 86400

    def __post_init__(self):
        if self.allow_origins is None:
            self.allow_origins = ["*"]
        if self.allow_methods is None:
            self.allow_methods = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
        if self.allow_headers is None:
            self.allow_headers = ["Content-Type", "Authorization", "X-Requested-With"]
        if self.expose_headers is None:
            self.expose_headers = []


class CORSMiddleware(Middleware):
    """
    CORS middleware for handling cross-origin requests.

    Register it early, before authentication: preflight requests carry no
    credentials and must succeed anyway.

        app.use(logger())
        app.use(cors(allow_origins=["https://myapp.com"]))
        app.use(require_auth)
    """

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    @property
    def name(self) -> str:
        return "cors"

    def __call__(self, req: Request, res: Response, next: Next) -> None:
        origin = req.get("origin", "")

        self._add_cors_headers(res, origin)

        if req.method == "OPTIONS" and req.get("access-control-request-method"):
            self._answer_preflight(req, res)
            return

        next()

    def _answer_preflight(self, req: Request, res: Response) -> None:
        """
        Answer a preflight with 204 No Content and the allow-lists.
        """
        if req.get("access-control-request-method"):
            res.set("Access-Control-Allow-Methods", ", ".join(self.config.allow_methods))

        requested_headers = req.get("access-control-request-headers")
        if requested_headers:
            res.set("Access-Control-Allow-Headers", ", ".join(self.config.allow_headers))

        res.set("Access-Control-Max-Age", str(self.config.max_age))
        res.status(HTTPStatus.NO_CONTENT).end()

    def _allowed_origin(self, origin: str) -> Optional[str]:
        """
        Pick the Access-Control-Allow-Origin value, or None if the origin
        is not allowed (no CORS headers at all; the browser blocks it).

            allow_origins=["*"]                → "*"  (origin if credentials)
            allow_origins=["https://app.com"]  → origin if listed
        """
        if "*" in self.config.allow_origins:
            if self.config.allow_credentials:
                return origin or "*"
            return "*"
        if origin in self.config.allow_origins:
            return origin
        return None

    def _add_cors_headers(self, res: Response, origin: str) -> None:
        allowed_origin = self._allowed_origin(origin)
        if allowed_origin is None:
            return

        res.set("Access-Control-Allow-Origin", allowed_origin)

        if self.config.allow_credentials:
            res.set("Access-Control-Allow-Credentials", "true")

        if self.config.expose_headers:
            res.set("Access-Control-Expose-Headers", ", ".join(self.config.expose_headers))

        # The answer depends on Origin whenever it is not a plain "*"
        if allowed_origin != "*":
            res.append("Vary", "Origin")


def cors(config: Optional[CORSConfig] = None, **options: Any) -> CORSMiddleware:
    """
    Create CORS middleware.

        app.use(cors())                                       # allow all
        app.use(cors(allow_origins=["https://myapp.com"],
                     allow_credentials=True))
    """
    if config is None:
        config = CORSConfig(**options)
    elif options:
        raise TypeError("Pass either a CORSConfig or keyword options, not both")
    return CORSMiddleware(config)
