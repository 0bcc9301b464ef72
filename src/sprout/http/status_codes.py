"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes and reason phrases used by the response object and by the
dispatch pipeline's built-in 404/500 responses.

=============================================================================
WHERE STATUS CODES COME FROM IN SPROUT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHO PICKS THE STATUS?                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Handler              res.status(201).json({...})    → 201         │
    │   Handler              res.redirect("/login")         → 302         │
    │   Handler              raise HTTPError(403)           → 403         │
    │   Body parser          malformed JSON                 → 400         │
    │   Pipeline             nothing matched                → 404         │
    │   Pipeline             error nobody handled           → 500         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Handlers may pass plain integers everywhere; HTTPStatus is an IntEnum so
both spellings compare equal:

    res.status(404)  ==  res.status(HTTPStatus.NOT_FOUND)

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # =========================================================================
    # 1xx INFORMATIONAL
    # =========================================================================
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101

    # =========================================================================
    # 2xx SUCCESS
    # =========================================================================
    OK = 200                    # Standard success response
    CREATED = 201               # New resource was created (POST)
    ACCEPTED = 202              # Request accepted, processing later
    NO_CONTENT = 204            # Success but no body (DELETE, preflight)
    PARTIAL_CONTENT = 206       # Range request fulfilled

    # =========================================================================
    # 3xx REDIRECTION
    # =========================================================================
    MOVED_PERMANENTLY = 301     # Resource moved permanently
    FOUND = 302                 # Default for res.redirect()
    SEE_OTHER = 303             # Redirect to GET after POST
    NOT_MODIFIED = 304          # Cached version is still valid (static ETag)
    TEMPORARY_REDIRECT = 307    # Like 302 but preserves HTTP method
    PERMANENT_REDIRECT = 308    # Like 301 but preserves HTTP method

    # =========================================================================
    # 4xx CLIENT ERRORS
    # =========================================================================
    BAD_REQUEST = 400                   # Malformed body (json/urlencoded parsers)
    UNAUTHORIZED = 401                  # Authentication required
    FORBIDDEN = 403                     # Path traversal, permission denied
    NOT_FOUND = 404                     # No route matched
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    CONFLICT = 409
    GONE = 410
    PAYLOAD_TOO_LARGE = 413             # Body over the parser's limit
    UNSUPPORTED_MEDIA_TYPE = 415
    IM_A_TEAPOT = 418
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # =========================================================================
    # 5xx SERVER ERRORS
    # =========================================================================
    INTERNAL_SERVER_ERROR = 500         # Unhandled error fell off the chain
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504

    @property
    def phrase(self) -> str:
        """Reason phrase for this status code (``"Not Found"`` for 404)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_redirect(self) -> bool:
        """Check if this is a 3xx status code."""
        return 300 <= self < 400

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx status code."""
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


def status_phrase(code: int) -> str:
    """
    Get the reason phrase for any integer status code.

    Unknown codes (e.g. a custom 299) return "Unknown" rather than raising,
    because handlers are free to set any code they like.
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"


# =============================================================================
# REASON PHRASES
# =============================================================================

_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",

    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",

    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.SEE_OTHER: "See Other",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",
    HTTPStatus.PERMANENT_REDIRECT: "Permanent Redirect",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.NOT_ACCEPTABLE: "Not Acceptable",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.GONE: "Gone",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.IM_A_TEAPOT: "I'm a teapot",
    HTTPStatus.UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    HTTPStatus.TOO_MANY_REQUESTS: "Too Many Requests",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
}
