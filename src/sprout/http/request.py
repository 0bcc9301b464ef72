"""
=============================================================================
REQUEST
=============================================================================

The per-call request descriptor handed to every handler as ``req``.

Sprout does not read sockets or parse HTTP off the wire. A transport
(WSGI bridge, test client, socket server, ...) builds a Request from what
it already parsed and passes it to App.handle():

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHO FILLS WHICH FIELD                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   TRANSPORT (before dispatch)                                        │
    │     method, path, query_string, headers, raw_body, client_address   │
    │                                                                      │
    │   BODY PARSER MIDDLEWARE (json(), urlencoded())                     │
    │     body                                                             │
    │                                                                      │
    │   cookie_parser() MIDDLEWARE                                        │
    │     cookies                                                          │
    │                                                                      │
    │   DISPATCH PIPELINE (before each handler)                           │
    │     params          ← route parameters, read-only                   │
    │     base_url        ← mount point the current handler lives under   │
    │     relative_path   ← path with base_url stripped                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY HEADERS ARE STORED LOWERCASE
=============================================================================

HTTP header names are case-insensitive (RFC 7230). Normalizing once in
__post_init__ means every lookup is a plain dict access:

    Request("GET", "/", headers={"Content-Type": "application/json"})
    req.headers  →  {"content-type": "application/json"}
    req.get("CONTENT-TYPE")  →  "application/json"

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qs


# Shared empty mapping for layers without route parameters
EMPTY_PARAMS: Mapping[str, Optional[str]] = MappingProxyType({})


@dataclass
class Request:
    """
    An HTTP request as seen by handlers.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         "GET", "POST", ... (upper-cased)
        path:           Request path without query string ("/users/42")
        query_string:   Raw query string without "?" ("page=2&sort=name")
        headers:        Header dict with LOWERCASE keys
        body:           Decoded body (set by body-parser middleware)
        raw_body:       Undecoded body bytes from the transport
        client_address: (ip, port) of the peer
        params:         Route parameters of the currently running route
        cookies:        Parsed cookies (set by cookie_parser())
        app:            The App dispatching this request

    =========================================================================
    """

    method: str
    path: str = "/"
    query_string: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw_body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)
    version: str = "HTTP/1.1"

    # Filled in during dispatch
    params: Mapping[str, Optional[str]] = field(default_factory=lambda: EMPTY_PARAMS)
    cookies: Dict[str, str] = field(default_factory=dict)
    base_url: str = ""
    relative_path: str = ""
    app: Any = field(default=None, repr=False)

    # Parsed once from query_string
    query_params: Dict[str, List[str]] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()

        # Transports sometimes hand over "/path?query" in one piece
        if "?" in self.path:
            self.path, _, query = self.path.partition("?")
            self.query_string = self.query_string or query
        if not self.path.startswith("/"):
            self.path = "/" + self.path

        self.headers = {name.lower(): value for name, value in self.headers.items()}
        self.query_params = parse_qs(self.query_string, keep_blank_values=True)
        self.relative_path = self.relative_path or self.path

    # =========================================================================
    # URL PROPERTIES
    # =========================================================================

    @property
    def original_url(self) -> str:
        """Full request target as received: path plus query string."""
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path

    @property
    def query(self) -> Dict[str, str]:
        """
        Query parameters with only the first value of each name.

            # URL: /search?q=sprout&tag=a&tag=b
            req.query  →  {"q": "sprout", "tag": "a"}

        Use get_query_list() for repeated parameters.
        """
        return {name: values[0] for name, values in self.query_params.items() if values}

    # =========================================================================
    # HEADER PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json"), or None."""
        value = self.headers.get("content-type", "")
        return value.split(";")[0].strip().lower() or None

    @property
    def is_json(self) -> bool:
        content_type = self.content_type or ""
        return content_type == "application/json" or content_type.endswith("+json")

    @property
    def xhr(self) -> bool:
        """True for requests sent by XMLHttpRequest-style clients."""
        return self.headers.get("x-requested-with", "").lower() == "xmlhttprequest"

    # =========================================================================
    # PROXY-AWARE PROPERTIES
    # =========================================================================
    #
    # Behind a reverse proxy, the socket peer is the proxy itself. The real
    # client is in X-Forwarded-For, but that header is only trustworthy when
    # the app is configured to trust its proxy (config.trust_proxy).
    #
    #   Client 203.0.113.7 → Proxy 10.0.0.2 → App
    #   X-Forwarded-For: 203.0.113.7
    #
    # =========================================================================

    @property
    def trust_proxy(self) -> bool:
        config = getattr(self.app, "config", None)
        return bool(config and config.trust_proxy)

    @property
    def ips(self) -> List[str]:
        """Client address chain from X-Forwarded-For (trusted proxies only)."""
        if not self.trust_proxy:
            return []
        forwarded = self.headers.get("x-forwarded-for", "")
        return [ip.strip() for ip in forwarded.split(",") if ip.strip()]

    @property
    def ip(self) -> str:
        """Client IP address, honoring X-Forwarded-For when trusted."""
        ips = self.ips
        if ips:
            return ips[0]
        return self.client_address[0]

    @property
    def protocol(self) -> str:
        """'http' or 'https'."""
        if self.trust_proxy:
            forwarded = self.headers.get("x-forwarded-proto", "")
            if forwarded:
                return forwarded.split(",")[0].strip().lower()
        return "http"

    @property
    def secure(self) -> bool:
        return self.protocol == "https"

    @property
    def hostname(self) -> str:
        """Host name without port, honoring X-Forwarded-Host when trusted."""
        host = ""
        if self.trust_proxy:
            host = self.headers.get("x-forwarded-host", "").split(",")[0].strip()
        host = host or self.headers.get("host", "")
        # IPv6 literals keep their brackets: "[::1]:8080" → "[::1]"
        if host.startswith("["):
            return host[: host.find("]") + 1]
        return host.split(":")[0]

    # =========================================================================
    # ACCESSOR METHODS
    # =========================================================================

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a header value (case-insensitive).

        "Referer" and "Referrer" are interchangeable, as browsers spell
        the header one way and people spell it the other.
        """
        name = name.lower()
        if name in ("referer", "referrer"):
            return self.headers.get("referer", self.headers.get("referrer", default))
        return self.headers.get(name, default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> List[str]:
        """All values of a repeated query parameter (empty list if absent)."""
        return list(self.query_params.get(name, []))
