"""
=============================================================================
BODY PARSER MIDDLEWARE
=============================================================================

Decodes request bodies into req.body. The transport hands over the raw
bytes in req.raw_body; these middleware interpret them:

    ┌───────────────────────────────────┬─────────────────────────────────┐
    │ Content-Type                      │ req.body                        │
    ├───────────────────────────────────┼─────────────────────────────────┤
    │ application/json, */*+json        │ json():       dict / list       │
    │ application/x-www-form-urlencoded │ urlencoded(): {name: value}     │
    │ anything else                     │ untouched, next()               │
    └───────────────────────────────────┴─────────────────────────────────┘

Failures never raise out of the pipeline; they become HTTP errors passed
to next(err):

    malformed body           → 400 Bad Request
    body larger than limit   → 413 Payload Too Large
    unknown charset          → 415 Unsupported Media Type

=============================================================================
"""

import json as json_module
from abc import abstractmethod
import re
from typing import Dict, List, Union
from urllib.parse import parse_qs

from ..errors import HTTPError
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import HTTPStatus
from .base import Middleware, Next


DEFAULT_LIMIT = 100 * 1024  # 100kb

_SIZE = re.compile(r"^\s*(\d+)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_UNITS = {"b": 1, "kb": 1024, "mb": 1024 ** 2, "gb": 1024 ** 3}


def parse_size(limit: Union[int, str]) -> int:
    """
    Parse a body size limit.

        parse_size(1024)     → 1024
        parse_size("100kb")  → 102400
        parse_size("1mb")    → 1048576
    """
    if isinstance(limit, int):
        if limit < 0:
            raise ValueError("Body size limit must be >= 0")
        return limit
    match = _SIZE.match(limit)
    if not match:
        raise ValueError(f"Invalid body size limit: {limit!r}")
    number, unit = match.groups()
    return int(number) * _UNITS[(unit or "b").lower()]


def _charset(req: Request, default: str = "utf-8") -> str:
    for param in req.headers.get("content-type", "").split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip('"').lower()
    return default


class _BodyParser(Middleware):
    """Shared size check and decoding for the concrete parsers."""

    def __init__(self, limit: Union[int, str] = DEFAULT_LIMIT):
        self.limit = parse_size(limit)

    @abstractmethod
    def applies_to(self, req: Request) -> bool:
        """Whether this parser handles the request's Content-Type."""
        pass

    @abstractmethod
    def parse(self, text: str):
        """Decode the body text; raise ValueError on malformed input."""
        pass

    def __call__(self, req: Request, res: Response, next: Next) -> None:
        # Already decoded by an earlier parser, or not our content type
        if req.body is not None or not self.applies_to(req):
            next()
            return

        raw = req.raw_body or b""
        if len(raw) > self.limit:
            next(HTTPError(
                HTTPStatus.PAYLOAD_TOO_LARGE,
                f"Request body is {len(raw)} bytes, limit is {self.limit}",
            ))
            return

        try:
            text = raw.decode(_charset(req))
        except LookupError:
            next(HTTPError(HTTPStatus.UNSUPPORTED_MEDIA_TYPE, f"Unsupported charset {_charset(req)!r}"))
            return
        except UnicodeDecodeError as e:
            next(HTTPError(HTTPStatus.BAD_REQUEST, f"Request body is not valid text: {e.reason}"))
            return

        try:
            req.body = self.parse(text)
        except ValueError as e:
            next(HTTPError(HTTPStatus.BAD_REQUEST, str(e)))
            return

        next()


class JSONBodyParser(_BodyParser):
    """
    Decode JSON bodies.

    strict=True only accepts objects and arrays at the top level, which
    is what APIs almost always expect; a bare ``"string"`` or ``42`` body
    is rejected with 400.
    """

    def __init__(self, limit: Union[int, str] = DEFAULT_LIMIT, strict: bool = True):
        super().__init__(limit)
        self.strict = strict

    @property
    def name(self) -> str:
        return "json"

    def applies_to(self, req: Request) -> bool:
        return req.is_json

    def parse(self, text: str):
        if not text.strip():
            return {}
        try:
            data = json_module.loads(text)
        except json_module.JSONDecodeError as e:
            raise ValueError(f"Malformed JSON body: {e.msg} at position {e.pos}") from e
        if self.strict and not isinstance(data, (dict, list)):
            raise ValueError("JSON body must be an object or an array")
        return data


class URLEncodedBodyParser(_BodyParser):
    """
    Decode HTML form bodies.

        "name=ada&tag=a&tag=b"  →  {"name": "ada", "tag": ["a", "b"]}

    A name that appears once maps to a string, a repeated name to a list.
    """

    @property
    def name(self) -> str:
        return "urlencoded"

    def applies_to(self, req: Request) -> bool:
        return req.content_type == "application/x-www-form-urlencoded"

    def parse(self, text: str) -> Dict[str, Union[str, List[str]]]:
        parsed = parse_qs(text, keep_blank_values=True, strict_parsing=False)
        return {
            key: values[0] if len(values) == 1 else values
            for key, values in parsed.items()
        }


def json(limit: Union[int, str] = DEFAULT_LIMIT, strict: bool = True) -> JSONBodyParser:
    """
    Create JSON body-parsing middleware.

        app.use(json())
        app.use("/upload", json(limit="1mb"))
    """
    return JSONBodyParser(limit=limit, strict=strict)


def urlencoded(limit: Union[int, str] = DEFAULT_LIMIT) -> URLEncodedBodyParser:
    """Create form body-parsing middleware."""
    return URLEncodedBodyParser(limit=limit)
