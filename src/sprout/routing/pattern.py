"""
=============================================================================
PATH PATTERN COMPILER AND MATCHER
=============================================================================

Turns route patterns like "/users/:id" into CompiledPattern objects and
matches request paths against them segment by segment.

=============================================================================
PATTERN SYNTAX
=============================================================================

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │  Pattern segment         │  Meaning                                 │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │  users                   │  Literal: must equal the path segment    │
    │  :id                     │  Param: captures exactly one segment     │
    │  :page?                  │  Optional param (last segment only may   │
    │                          │  be absent)                              │
    │  :version(v1|v2)         │  Param whose value must FULLY match the  │
    │                          │  regex between the parentheses           │
    │  :id(\\d+)?               │  Constrained AND optional                │
    │  *                       │  Wildcard: captures the rest of the path │
    │                          │  under the reserved key "*"              │
    │  *filepath               │  Wildcard bound under "filepath"         │
    └──────────────────────────┴──────────────────────────────────────────┘

    Examples:
        /users/:id                  /users/42          → {"id": "42"}
        /docs/:page?                /docs              → {"page": None}
        /api/:version(v1|v2)/status /api/v3/status     → no match
        /files/*                    /files/a/b/c       → {"*": "a/b/c"}

=============================================================================
WHY SEGMENT-WISE MATCHING (NOT ONE BIG REGEX)?
=============================================================================

A single regex per route would have to encode optional segments,
per-segment constraints and the wildcard in one expression, where they
interact in surprising ways (a constraint containing "/" could swallow
the next segment). Walking segments keeps each rule independent:

    Pattern segments:   [users]   [:id(\\d+)]   [posts]
                           │          │            │
    Path segments:      [users]   [   42   ]   [posts]
                         equal?    fullmatch?    equal?

Constraint regexes are still compiled ONCE at registration, and only
ever see a single segment's value.

=============================================================================
PATH NORMALIZATION
=============================================================================

    "//users///42"   →  segments ["users", "42"]   (duplicate slashes collapse)
    "/users/42/"     →  segments ["users", "42"] + trailing slash flag

The trailing slash flag only matters in strict routing mode.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

from ..errors import PatternError


# Key under which a bare "*" wildcard stores the captured remainder
WILDCARD_KEY = "*"

_PARAM_NAME = re.compile(r"^\w+$")

Params = Dict[str, Optional[str]]


class SegmentType(Enum):
    """How a single pattern segment is matched."""
    LITERAL = "literal"     # users     - exact (or case-folded) equality
    PARAM = "param"         # :id       - captures one path segment
    WILDCARD = "wildcard"   # *         - captures everything remaining


@dataclass(frozen=True)
class Segment:
    """
    One compiled pattern segment.

    For LITERAL segments ``value`` is the text; for PARAM and WILDCARD it
    is the name the captured value is bound under.
    """

    type: SegmentType
    value: str
    optional: bool = False
    constraint: Optional[str] = None

    # Compiled constraint, case-sensitive and case-insensitive flavors
    _regex: Optional[re.Pattern] = field(default=None, compare=False, repr=False)
    _regex_ci: Optional[re.Pattern] = field(default=None, compare=False, repr=False)

    def accepts(self, value: str, case_sensitive: bool) -> bool:
        """Check a captured value against the constraint (if any)."""
        regex = self._regex if case_sensitive else self._regex_ci
        if regex is None:
            return True
        return regex.fullmatch(value) is not None

    def __str__(self) -> str:
        if self.type is SegmentType.LITERAL:
            return self.value
        if self.type is SegmentType.WILDCARD:
            return "*" if self.value == WILDCARD_KEY else f"*{self.value}"
        text = f":{self.value}"
        if self.constraint is not None:
            text += f"({self.constraint})"
        if self.optional:
            text += "?"
        return text


@dataclass(frozen=True)
class CompiledPattern:
    """
    Immutable, matchable form of a path pattern.

    Invariants (enforced by compile_pattern):
    - at most one WILDCARD, and only as the final segment
    - parameter names are unique
    """

    source: str
    segments: Tuple[Segment, ...]
    trailing_slash: bool = False

    @property
    def param_names(self) -> List[str]:
        return [s.value for s in self.segments if s.type is not SegmentType.LITERAL]

    @property
    def has_wildcard(self) -> bool:
        return bool(self.segments) and self.segments[-1].type is SegmentType.WILDCARD

    @property
    def is_root(self) -> bool:
        return not self.segments

    def match(self, path: str, case_sensitive: bool = False, strict: bool = False) -> Optional[Params]:
        return match(self, path, case_sensitive, strict)

    def build(self, **params: str) -> str:
        """
        Build a concrete path from parameter values (reverse routing).

            compile_pattern("/users/:id/posts/:post?").build(id="7")
            → "/users/7/posts"

        Raises:
            ValueError: A required parameter is missing or a value
                        violates its constraint.
        """
        parts: List[str] = []
        for segment in self.segments:
            if segment.type is SegmentType.LITERAL:
                parts.append(segment.value)
                continue

            value = params.get(segment.value)
            if value is None:
                if segment.optional:
                    continue
                raise ValueError(f"Missing value for route parameter {segment.value!r}")
            value = str(value)

            if segment.type is SegmentType.WILDCARD:
                parts.append(quote(value.strip("/"), safe="/"))
            else:
                if not segment.accepts(value, case_sensitive=True):
                    raise ValueError(
                        f"Value {value!r} does not match constraint "
                        f"({segment.constraint}) of parameter {segment.value!r}"
                    )
                parts.append(quote(value, safe=""))

        path = "/" + "/".join(parts)
        if self.trailing_slash and parts:
            path += "/"
        return path

    def __str__(self) -> str:
        return self.source


@dataclass(frozen=True)
class PrefixMatch:
    """
    Result of matching a pattern against the LEADING segments of a path.

        prefix "/api/:version"  vs  path "/api/v2/users/7"

        params          → {"version": "v2"}
        base_path       → "/api/v2"      (what was consumed)
        remaining_path  → "/users/7"     (what a mounted router sees)
    """

    params: Params
    base_path: str
    remaining_path: str


# =============================================================================
# PATH SPLITTING
# =============================================================================

def split_path(path: str) -> Tuple[List[str], bool]:
    """
    Split a request path into segments plus a trailing-slash flag.

        "/users/42/"   → (["users", "42"], True)
        "//a//b"       → (["a", "b"], False)
        "/"            → ([], False)
    """
    segments = [part for part in path.split("/") if part]
    trailing_slash = bool(segments) and path.endswith("/")
    return segments, trailing_slash


def _split_pattern(pattern: str) -> List[str]:
    """
    Split a pattern on "/" while leaving slashes inside "( )" alone.

    ":path(a/b|c)" is ONE segment even though its regex contains a slash.
    """
    segments: List[str] = []
    current: List[str] = []
    depth = 0
    escaped = False

    for char in pattern:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\":
            current.append(char)
            escaped = True
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise PatternError(pattern, "unbalanced ')'")
        elif char == "/" and depth == 0:
            segments.append("".join(current))
            current = []
            continue
        current.append(char)

    if depth > 0:
        raise PatternError(pattern, "unterminated constraint group")

    segments.append("".join(current))
    return [segment for segment in segments if segment]


# =============================================================================
# COMPILATION
# =============================================================================

def _compile_param(raw: str, pattern: str) -> Segment:
    """Compile ":name", ":name?", ":name(regex)" or ":name(regex)?"."""
    body = raw[1:]
    optional = body.endswith("?")
    if optional:
        body = body[:-1]

    constraint: Optional[str] = None
    paren = body.find("(")
    if paren != -1:
        if not body.endswith(")"):
            raise PatternError(pattern, f"unexpected text after constraint in {raw!r}")
        constraint = body[paren + 1:-1]
        body = body[:paren]
        if not constraint:
            raise PatternError(pattern, f"empty constraint in {raw!r}")

    if not _PARAM_NAME.match(body):
        raise PatternError(pattern, f"invalid parameter name in {raw!r}")

    regex = regex_ci = None
    if constraint is not None:
        try:
            regex = re.compile(constraint)
            regex_ci = re.compile(constraint, re.IGNORECASE)
        except re.error as e:
            raise PatternError(pattern, f"invalid constraint for :{body}: {e}") from e

    return Segment(
        type=SegmentType.PARAM,
        value=body,
        optional=optional,
        constraint=constraint,
        _regex=regex,
        _regex_ci=regex_ci,
    )


def _compile_segment(raw: str, pattern: str) -> Segment:
    if raw.startswith(":"):
        return _compile_param(raw, pattern)

    if raw.startswith("*"):
        name = raw[1:] or WILDCARD_KEY
        if name != WILDCARD_KEY and not _PARAM_NAME.match(name):
            raise PatternError(pattern, f"invalid wildcard name in {raw!r}")
        return Segment(type=SegmentType.WILDCARD, value=name)

    return Segment(type=SegmentType.LITERAL, value=raw)


def compile_pattern(pattern: str) -> CompiledPattern:
    """
    Compile a path pattern.

    =========================================================================
    COMPILATION STEPS
    =========================================================================

    Input:  "/api/:version(v1|v2)/files/*"

    Step 1: Split on "/" (ignoring slashes inside parentheses)
            ["api", ":version(v1|v2)", "files", "*"]

    Step 2: Classify each segment
            api              → LITERAL  "api"
            :version(v1|v2)  → PARAM    "version", constraint v1|v2
            files            → LITERAL  "files"
            *                → WILDCARD "*"

    Step 3: Validate
            - wildcard only as the last segment
            - no duplicate parameter names

    =========================================================================

    Raises:
        PatternError: Unterminated constraint group, wildcard before the
                      final segment, duplicate parameter name, invalid
                      parameter name or invalid constraint regex.
    """
    raw_segments = _split_pattern(pattern)
    segments = tuple(_compile_segment(raw, pattern) for raw in raw_segments)

    seen = set()
    for index, segment in enumerate(segments):
        if segment.type is SegmentType.WILDCARD and index != len(segments) - 1:
            raise PatternError(pattern, "wildcard must be the last segment")
        if segment.type is SegmentType.LITERAL:
            continue
        if segment.value in seen:
            raise PatternError(pattern, f"duplicate parameter name {segment.value!r}")
        seen.add(segment.value)

    trailing_slash = bool(segments) and pattern.endswith("/")
    return CompiledPattern(source=pattern, segments=segments, trailing_slash=trailing_slash)


# =============================================================================
# MATCHING
# =============================================================================

def _match_segments(
    segments: Tuple[Segment, ...],
    parts: List[str],
    case_sensitive: bool,
) -> Optional[Tuple[Params, int]]:
    """
    Walk pattern segments against path segments positionally.

    Returns (params, number of path segments consumed), or None.
    Leftover path segments are NOT an error here; callers decide whether
    the whole path must be consumed (routes) or only a prefix (mounts).
    """
    params: Params = {}
    position = 0
    last_index = len(segments) - 1

    for index, segment in enumerate(segments):
        if segment.type is SegmentType.WILDCARD:
            # Swallows everything that is left, but at least one segment
            if position >= len(parts):
                return None
            params[segment.value] = unquote("/".join(parts[position:]))
            return params, len(parts)

        if position >= len(parts):
            # Only a trailing optional param may match nothing
            if segment.type is SegmentType.PARAM and segment.optional and index == last_index:
                params[segment.value] = None
                return params, position
            return None

        part = unquote(parts[position])

        if segment.type is SegmentType.LITERAL:
            if case_sensitive:
                if part != segment.value:
                    return None
            elif part.lower() != segment.value.lower():
                return None
        else:
            if not segment.accepts(part, case_sensitive):
                return None
            params[segment.value] = part

        position += 1

    return params, position


def match(
    compiled: CompiledPattern,
    path: str,
    case_sensitive: bool = False,
    strict: bool = False,
) -> Optional[Params]:
    """
    Match a full request path against a compiled pattern.

    Args:
        compiled: Pattern from compile_pattern()
        path: Request path ("/users/42")
        case_sensitive: Literal segments must match case exactly
        strict: "/users/" and "/users" are different paths

    Returns:
        Dict of bound parameters on success (empty for static routes),
        None on no-match. Absent optional params are bound to None.
    """
    parts, trailing_slash = split_path(path)

    if strict and not compiled.has_wildcard and compiled.trailing_slash != trailing_slash:
        return None

    result = _match_segments(compiled.segments, parts, case_sensitive)
    if result is None:
        return None

    params, consumed = result
    if consumed != len(parts):
        return None
    return params


def match_prefix(
    compiled: CompiledPattern,
    path: str,
    case_sensitive: bool = False,
) -> Optional[PrefixMatch]:
    """
    Match a pattern against the leading segments of a path.

    Prefixes only match on segment boundaries:

        "/api"  matches  "/api", "/api/", "/api/users"
        "/api"  does NOT match  "/apis", "/ap"

    The root prefix "/" matches every path and consumes nothing.
    """
    parts, trailing_slash = split_path(path)

    result = _match_segments(compiled.segments, parts, case_sensitive)
    if result is None:
        return None

    params, consumed = result
    base_path = "/" + "/".join(parts[:consumed]) if consumed else ""

    rest = parts[consumed:]
    if rest:
        remaining_path = "/" + "/".join(rest) + ("/" if trailing_slash else "")
    else:
        remaining_path = "/"

    return PrefixMatch(params=params, base_path=base_path, remaining_path=remaining_path)


def normalize_prefix(prefix: Optional[str]) -> Optional[CompiledPattern]:
    """Compile a use()/mount prefix; None and "/" mean "every path"."""
    if prefix is None:
        return None
    compiled = compile_pattern(prefix)
    return None if compiled.is_root else compiled
