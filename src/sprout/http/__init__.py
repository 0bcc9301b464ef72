"""
=============================================================================
REQUEST / RESPONSE CARRIERS
=============================================================================

The data objects that flow through the dispatch pipeline:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   Built by the transport, read by handlers.                         │
    │   method, path, query, headers (lowercase keys), body, params       │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │   Accumulated by handlers, read back by the transport.              │
    │   status, headers, cookies, body chunks, finalized flag             │
    ├─────────────────────────────────────────────────────────────────────┤
    │ SUPPORT                                                             │
    │   status_codes.py   HTTPStatus enum + reason phrases                │
    │   mime_types.py     extension → Content-Type                        │
    │   cookies.py        Cookie header parsing, Set-Cookie directives    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .cookies import Cookie, parse_cookies, format_http_date
from .request import Request
from .response import Response
from .status_codes import HTTPStatus, status_phrase
from .mime_types import get_mime_type, get_content_type

__all__ = [
    "Request",
    "Response",
    "Cookie",
    "parse_cookies",
    "format_http_date",
    "HTTPStatus",
    "status_phrase",
    "get_mime_type",
    "get_content_type",
]
