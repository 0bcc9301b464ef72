"""
Path patterns and routers.

    pattern.py   compile_pattern(), match(), match_prefix()
    router.py    Router, Route, MiddlewareEntry
"""

from .pattern import (
    WILDCARD_KEY,
    CompiledPattern,
    PrefixMatch,
    Segment,
    SegmentType,
    compile_pattern,
    match,
    match_prefix,
)
from .router import ALL, METHODS, MiddlewareEntry, Route, Router

__all__ = [
    "WILDCARD_KEY",
    "CompiledPattern",
    "PrefixMatch",
    "Segment",
    "SegmentType",
    "compile_pattern",
    "match",
    "match_prefix",
    "ALL",
    "METHODS",
    "MiddlewareEntry",
    "Route",
    "Router",
]
