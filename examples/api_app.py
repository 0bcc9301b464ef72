"""
=============================================================================
EXAMPLE: REST API APPLICATION
=============================================================================

A small users API built on Sprout. It shows:

1. Application configuration
2. Middleware pipeline (logging, CORS, body parsing, error rendering)
3. A mounted sub-router with RESTful routes
4. Path parameters, JSON bodies and HTTPError
5. Dispatching requests in-process, without a server

ARCHITECTURE OVERVIEW:
─────────────────────

    ┌─────────────────────────────────────────────────────────────────┐
    │  Request("POST", "/api/users", headers=..., raw_body=...)       │
    └─────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────┐
    │  app.handle(request)                                            │
    │                                                                  │
    │  logger() ──► cors() ──► json() ──► /api router ──► error_handler│
    │                                       │                          │
    │                                       ├─ load_user (/users/:id)  │
    │                                       └─ route handler           │
    └─────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────┐
    │  Response: status_code, header_items(), body                    │
    └─────────────────────────────────────────────────────────────────┘

RUN:
    python examples/api_app.py
    python -m sprout routes api_app:create_app        (from examples/)

=============================================================================
"""

from typing import Any, Dict, Optional

from sprout import App, AppConfig, HTTPError, Request, Router
from sprout.middleware import cors, error_handler, json, logger


def create_app(config: Optional[AppConfig] = None) -> App:
    """Application factory: a fresh app with its own in-memory store."""
    app = App(config or AppConfig.from_env())
    users: Dict[int, Dict[str, Any]] = {
        1: {"id": 1, "name": "Alice", "email": "alice@example.com"},
        2: {"id": 2, "name": "Bob", "email": "bob@example.com"},
    }
    app.locals["next_id"] = 3

    # =========================================================================
    # MIDDLEWARE
    # =========================================================================
    #
    #   logger()          one access line per response (sprout.access)
    #   cors()            CORS headers, answers preflights
    #   json()            req.body from application/json bodies
    #
    # =========================================================================

    app.use(logger())
    app.use(cors())
    app.use(json())

    # =========================================================================
    # USERS API, mounted at /api
    # =========================================================================

    api = Router(name="api")

    def load_user(req, res, next):
        """Resolve :id into res.locals["user"] or fail with 404."""
        user_id = int(req.params["id"])
        if user_id not in users:
            raise HTTPError(404, f"User {user_id} not found")
        res.locals["user"] = users[user_id]
        next()

    def validated(body: Any) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise HTTPError(400, "Expected a JSON object")
        unknown = set(body) - {"name", "email"}
        if unknown:
            raise HTTPError(400, f"Unknown fields: {', '.join(sorted(unknown))}")
        return body

    @api.get("/users", name="users")
    def list_users(req, res, next):
        res.json({"users": list(users.values())})

    @api.post("/users")
    def create_user(req, res, next):
        data = validated(req.body)
        if "name" not in data:
            raise HTTPError(400, "Field 'name' is required")

        user_id = app.locals["next_id"]
        app.locals["next_id"] += 1
        users[user_id] = {"id": user_id, "name": data["name"], "email": data.get("email")}

        res.status(201).location(app.url_for("user", id=user_id)).json(users[user_id])

    def show_user(req, res, next):
        res.json(res.locals["user"])

    def update_user(req, res, next):
        res.locals["user"].update(validated(req.body))
        res.json(res.locals["user"])

    def delete_user(req, res, next):
        del users[res.locals["user"]["id"]]
        res.status(204).end()

    # load_user runs first in each chain
    api.get("/users/:id(\\d+)", load_user, show_user, name="user")
    api.put("/users/:id(\\d+)", load_user, update_user)
    api.delete("/users/:id(\\d+)", load_user, delete_user)

    app.use("/api", api)

    # =========================================================================
    # HEALTH AND ERRORS
    # =========================================================================

    app.get("/health", lambda req, res, next: res.json({"status": "healthy"}))

    # Last middleware entry: renders errors from everything mounted above
    app.use(error_handler())

    return app


def main():
    app = create_app()
    app.setup_logging()

    requests = [
        Request("GET", "/api/users"),
        Request("GET", "/api/users/1"),
        Request("GET", "/api/users/99", headers={"Accept": "application/json"}),
        Request(
            "POST", "/api/users",
            headers={"Content-Type": "application/json"},
            raw_body=b'{"name": "Charlie", "email": "charlie@example.com"}',
        ),
        Request("DELETE", "/api/users/2"),
        Request("OPTIONS", "/api/users"),
        Request("GET", "/health"),
    ]

    print("=" * 60)
    for request in requests:
        response = app.handle(request)
        print(f"{request.method} {request.original_url}  →  {response.status_code}")
        if response.body:
            print(f"    {response.text}")
    print("=" * 60)


if __name__ == "__main__":
    main()
