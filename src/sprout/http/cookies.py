"""
Cookie parsing and Set-Cookie serialization.

The read side (parse_cookies) backs the cookie_parser() middleware; the
write side (Cookie) is what res.cookie() and res.clear_cookie() record.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import quote, unquote


def parse_cookies(header: str) -> Dict[str, str]:
    """
    Parse a ``Cookie`` header value into a name-value dict.

        >>> parse_cookies("session=abc123; theme=dark")
        {'session': 'abc123', 'theme': 'dark'}

    Values are percent-decoded and surrounding double quotes are removed.
    The first occurrence of a name wins, matching browser send order
    (most specific path first).
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies

    for pair in header.split(";"):
        name, sep, value = pair.strip().partition("=")
        if not sep or not name:
            continue
        name = name.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies.setdefault(name, unquote(value))
    return cookies


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT; naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# Used by clear_cookie(): any date in the past makes the browser drop it
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Cookie:
    """
    A ``Set-Cookie`` directive attached to a Response.

        Cookie("session", "abc", http_only=True, max_age=3600).serialize()
        → 'session=abc; Max-Age=3600; Path=/; HttpOnly'
    """

    name: str
    value: str
    max_age: Optional[int] = None
    expires: Optional[datetime] = None
    path: Optional[str] = "/"
    domain: Optional[str] = None
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None

    def serialize(self) -> str:
        """Serialize to a ``Set-Cookie`` header value."""
        parts = [f"{self.name}={quote(self.value, safe='')}"]
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.expires is not None:
            parts.append(f"Expires={format_http_date(self.expires)}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site.capitalize()}")
        return "; ".join(parts)
