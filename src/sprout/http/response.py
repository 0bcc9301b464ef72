"""
=============================================================================
RESPONSE
=============================================================================

The per-call response accumulator handed to every handler as ``res``.

=============================================================================
RESPONSE LIFECYCLE
=============================================================================

A Response is mutable until it is FINALIZED, then it is frozen:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        RESPONSE STATES                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    OPEN ──status()/set()/cookie()──► OPEN                           │
    │     │                                                                │
    │     ├──write(chunk)──► STREAMING ──write(chunk)──► STREAMING        │
    │     │                      │                                         │
    │     │                      └──end()──┐                               │
    │     │                                ▼                               │
    │     └──end()/send()/json()/redirect()──► FINALIZED                  │
    │                                              │                       │
    │                         any further write ──►  ResponseFinalizedError│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Finalizing is what stops the dispatch pipeline: once a handler sends a
response, no later handler runs.

=============================================================================
BUILDER STYLE
=============================================================================

Every mutating method returns ``self`` so calls chain:

    res.status(201).set("Location", "/users/7").json({"id": 7})

=============================================================================
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..errors import ResponseFinalizedError
from .cookies import EPOCH, Cookie
from .mime_types import resolve_content_type
from .status_codes import HTTPStatus, status_phrase


logger = logging.getLogger(__name__)

FinishCallback = Callable[["Response"], None]


class Response:
    """
    Mutable response owned by exactly one dispatch.

    =========================================================================
    WHAT THE TRANSPORT READS AFTER App.handle() RETURNS
    =========================================================================

        res.status_code     → 200
        res.header_items()  → [("Content-Type", "..."), ("Set-Cookie", ...)]
        res.chunks          → [b"...", b"..."]  (ordered body chunks)
        res.body            → b"".join(res.chunks)

    =========================================================================
    """

    def __init__(self, app: Any = None):
        self.status_code: int = HTTPStatus.OK
        self.headers: Dict[str, str] = {}
        self.cookies: List[Cookie] = []
        self.chunks: List[bytes] = []
        self.locals: Dict[str, Any] = {}   # per-request state shared by handlers
        self.finalized = False
        self.app = app
        self._finish_callbacks: List[FinishCallback] = []

    def __repr__(self) -> str:
        state = "finalized" if self.finalized else "open"
        return f"<Response {self.status_code} {state} {len(self.body)} bytes>"

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def headers_sent(self) -> bool:
        """True once body bytes have been written (streaming or final)."""
        return bool(self.chunks) or self.finalized

    def _ensure_open(self, action: str) -> None:
        if self.finalized:
            raise ResponseFinalizedError(f"Cannot {action}: response already sent")

    # =========================================================================
    # STATUS AND HEADERS
    # =========================================================================

    def status(self, code: int) -> "Response":
        """Set the status code."""
        self._ensure_open("set status")
        self.status_code = int(code)
        return self

    def _find_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for existing in self.headers:
            if existing.lower() == lowered:
                return existing
        return None

    def set(self, name: Union[str, Dict[str, str]], value: Optional[str] = None) -> "Response":
        """
        Set a response header, replacing any existing value.

        Header names are matched case-insensitively, so setting
        "content-type" replaces an earlier "Content-Type".

            res.set("X-Request-Id", "abc")
            res.set({"Cache-Control": "no-store", "X-Frame-Options": "DENY"})
        """
        self._ensure_open("set header")
        if isinstance(name, dict):
            for key, val in name.items():
                self.set(key, val)
            return self

        existing = self._find_header(name)
        if existing is not None:
            del self.headers[existing]
        self.headers[name] = str(value)
        return self

    header = set

    def get(self, name: str) -> Optional[str]:
        """Get a response header value (case-insensitive)."""
        existing = self._find_header(name)
        return self.headers[existing] if existing is not None else None

    def append(self, name: str, value: str) -> "Response":
        """Append to a header value as a comma-separated list."""
        current = self.get(name)
        return self.set(name, f"{current}, {value}" if current else value)

    def remove(self, name: str) -> "Response":
        self._ensure_open("remove header")
        existing = self._find_header(name)
        if existing is not None:
            del self.headers[existing]
        return self

    def type(self, content_type: str) -> "Response":
        """
        Set Content-Type, expanding shorthands.

            res.type("json")   → application/json; charset=utf-8
            res.type("html")   → text/html; charset=utf-8
            res.type("png")    → image/png
        """
        return self.set("Content-Type", resolve_content_type(content_type))

    def location(self, url: str) -> "Response":
        return self.set("Location", url)

    # =========================================================================
    # COOKIES
    # =========================================================================

    def cookie(
        self,
        name: str,
        value: str,
        max_age: Optional[int] = None,
        expires: Optional[datetime] = None,
        path: Optional[str] = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        http_only: bool = False,
        same_site: Optional[str] = None,
    ) -> "Response":
        """Add a Set-Cookie directive."""
        self._ensure_open("set cookie")
        self.cookies.append(Cookie(
            name=name,
            value=value,
            max_age=max_age,
            expires=expires,
            path=path,
            domain=domain,
            secure=secure,
            http_only=http_only,
            same_site=same_site,
        ))
        return self

    def clear_cookie(self, name: str, path: Optional[str] = "/", domain: Optional[str] = None) -> "Response":
        """Tell the client to drop a cookie (empty value, expired date)."""
        return self.cookie(name, "", expires=EPOCH, path=path, domain=domain)

    # =========================================================================
    # BODY
    # =========================================================================

    def write(self, chunk: Union[str, bytes]) -> "Response":
        """
        Append a body chunk without finishing the response.

        Handlers that stream call write() repeatedly and then end().
        """
        self._ensure_open("write")
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        if chunk:
            self.chunks.append(bytes(chunk))
        return self

    def end(self, chunk: Union[str, bytes, None] = None) -> "Response":
        """Finish the response, optionally writing a last chunk."""
        self._ensure_open("end")
        if chunk is not None:
            self.write(chunk)
        self._finalize()
        return self

    def send(self, body: Any = None) -> "Response":
        """
        Send a body and finish the response.

        The Content-Type defaults depend on what is sent:

            str            → text/html; charset=utf-8
            bytes          → application/octet-stream
            dict/list/...  → delegated to json()
            None           → empty body
        """
        self._ensure_open("send")
        if body is None:
            return self.end()
        if isinstance(body, str):
            if self.get("Content-Type") is None:
                self.type("html")
            return self.end(body)
        if isinstance(body, (bytes, bytearray)):
            if self.get("Content-Type") is None:
                self.type("application/octet-stream")
            return self.end(bytes(body))
        return self.json(body)

    def json(self, data: Any) -> "Response":
        """Serialize data as JSON and finish the response."""
        self._ensure_open("send JSON")
        config = getattr(self.app, "config", None)
        indent = config.json_spaces if config is not None else None
        separators = None if indent else (",", ":")
        payload = json.dumps(data, indent=indent, separators=separators, default=str)
        if self.get("Content-Type") is None:
            self.type("json")
        return self.end(payload)

    def redirect(self, location: str, status: int = HTTPStatus.FOUND) -> "Response":
        """
        Redirect the client and finish the response.

            res.redirect("/login")                 → 302
            res.redirect("/new-home", 301)         → 301
        """
        self._ensure_open("redirect")
        self.status(status).location(location)
        if self.get("Content-Type") is None:
            self.type("text")
        return self.end(f"{status_phrase(status)}. Redirecting to {location}")

    def send_status(self, code: int) -> "Response":
        """Set the status and send its reason phrase as a text body."""
        self._ensure_open("send status")
        self.status(code)
        if self.get("Content-Type") is None:
            self.type("text")
        return self.end(status_phrase(code))

    # =========================================================================
    # FINALIZATION
    # =========================================================================

    def on_finish(self, callback: FinishCallback) -> "Response":
        """
        Register a callback to run once when the response is finalized.

        Middleware that needs to observe the final status (access logging,
        timing) registers here instead of wrapping ``next``, because the
        pipeline never returns control to a handler after calling next.
        """
        if self.finalized:
            callback(self)
        else:
            self._finish_callbacks.append(callback)
        return self

    def _finalize(self) -> None:
        if self.get("Content-Length") is None:
            self.headers["Content-Length"] = str(sum(len(chunk) for chunk in self.chunks))
        self.finalized = True

        callbacks, self._finish_callbacks = self._finish_callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("on_finish callback %r failed", callback)

    def header_items(self) -> List[Tuple[str, str]]:
        """
        Headers in wire order for the transport, one Set-Cookie per cookie.
        """
        items = list(self.headers.items())
        items.extend(("Set-Cookie", cookie.serialize()) for cookie in self.cookies)
        return items
