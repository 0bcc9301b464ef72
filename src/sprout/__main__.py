"""
=============================================================================
SPROUT CLI ENTRY POINT
=============================================================================

Inspect an application from the command line without a server.

=============================================================================
USAGE
=============================================================================

    # Print the route table of myproject/web.py's "app"
    python -m sprout routes myproject.web:app

    # Same, as JSON
    python -m sprout routes myproject.web:app --json

    # Dispatch one synthetic request and print the response
    python -m sprout request myproject.web:app GET /users/42
    python -m sprout request myproject.web:app POST /users \\
        -H "Content-Type: application/json" -d '{"name": "ada"}'

The target is "module.path:attribute"; the attribute must be an App
(or a callable returning one, such as an application factory).

=============================================================================
"""

import argparse
import importlib
import json
import os
import sys
from typing import List, Optional

from . import __version__
from .app import App
from .http.request import Request


def load_app(target: str) -> App:
    """
    Import "module:attribute" and return the App it names.

    Raises:
        ValueError: Malformed target or the attribute is not an App
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {target!r}")

    # Allow targets relative to the working directory, like `python -m`
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    module = importlib.import_module(module_name)
    app = getattr(module, attribute)
    if not isinstance(app, App) and callable(app):
        app = app()
    if not isinstance(app, App):
        raise ValueError(f"{target!r} is not a sprout App")
    return app


def format_routes(app: App) -> str:
    """
    Render the route table.

        METHOD   PATH                    NAME
        ------------------------------------------------------------
        GET      /                       -
        GET      /api/users/:id          user
    """
    lines = [f"{'METHOD':8} {'PATH':40} NAME", "-" * 60]
    for method, path, name in app.describe_routes():
        lines.append(f"{method:8} {path:40} {name or '-'}")
    return "\n".join(lines)


def _command_routes(args: argparse.Namespace) -> int:
    app = load_app(args.app)
    if args.json:
        routes = [
            {"method": method, "path": path, "name": name}
            for method, path, name in app.describe_routes()
        ]
        print(json.dumps(routes, indent=2))
    else:
        print(format_routes(app))
    return 0


def _command_request(args: argparse.Namespace) -> int:
    app = load_app(args.app)

    headers = {}
    for header in args.header:
        name, sep, value = header.partition(":")
        if not sep:
            raise ValueError(f"Expected 'Name: value' header, got {header!r}")
        headers[name.strip()] = value.strip()

    request = Request(
        method=args.method,
        path=args.path,
        headers=headers,
        raw_body=(args.data or "").encode("utf-8"),
        client_address=("127.0.0.1", 0),
    )
    response = app.handle(request)

    print(f"{response.status_code}")
    for name, value in response.header_items():
        print(f"{name}: {value}")
    print()
    print(response.text)
    return 0 if response.status_code < 500 else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="python -m sprout",
        description="Inspect Sprout applications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m sprout routes myproject.web:app
  python -m sprout routes myproject.web:app --json
  python -m sprout request myproject.web:app GET /users/42
        """,
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"Sprout {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ─────────────────────────────────────────────────────────────────────
    # routes
    # ─────────────────────────────────────────────────────────────────────

    routes = subparsers.add_parser("routes", help="Print the route table")
    routes.add_argument("app", help="Application as module:attribute")
    routes.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    routes.set_defaults(func=_command_routes)

    # ─────────────────────────────────────────────────────────────────────
    # request
    # ─────────────────────────────────────────────────────────────────────

    request = subparsers.add_parser("request", help="Dispatch one request and print the response")
    request.add_argument("app", help="Application as module:attribute")
    request.add_argument("method", help="HTTP method (GET, POST, ...)")
    request.add_argument("path", help="Request path, may include a query string")
    request.add_argument(
        "--header", "-H",
        action="append",
        default=[],
        help="Request header as 'Name: value' (repeatable)",
    )
    request.add_argument("--data", "-d", default=None, help="Request body")
    request.set_defaults(func=_command_request)

    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
