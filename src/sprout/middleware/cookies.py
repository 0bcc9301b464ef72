"""
Cookie parsing middleware.

    app.use(cookie_parser())

    # Cookie: session=abc123; theme=dark
    req.cookies  →  {"session": "abc123", "theme": "dark"}
"""

from ..http.cookies import parse_cookies
from ..http.request import Request
from ..http.response import Response
from .base import Middleware, Next


class CookieParser(Middleware):
    """Fill req.cookies from the Cookie header (once per request)."""

    @property
    def name(self) -> str:
        return "cookie_parser"

    def __call__(self, req: Request, res: Response, next: Next) -> None:
        if not req.cookies:
            req.cookies = parse_cookies(req.get("cookie", ""))
        next()


def cookie_parser() -> CookieParser:
    return CookieParser()
