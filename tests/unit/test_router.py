"""
Unit tests for the Router: registration, mounting, sealing and
introspection.
"""

import pytest

from sprout.errors import MountError, PatternError, RouterSealedError
from sprout.middleware.base import (
    ErrorHandler,
    Handler,
    Middleware,
    error_handler_function,
    to_error_handler,
    to_handler,
)
from sprout.routing.router import ALL, METHODS, Route, Router


def dummy_handler(req, res, next):
    """Dummy handler for testing."""
    res.send("ok")


def dummy_error_handler(err, req, res, next):
    res.status(500).send("error")


class Passthrough(Middleware):
    def __call__(self, req, res, next):
        next()


class TestRouteRegistration:
    """Tests for add_route() and the verb helpers."""

    def test_add_route(self):
        router = Router()
        route = router.add_route("get", "/users", dummy_handler)

        assert isinstance(route, Route)
        assert route.method == "GET"
        assert route.path == "/users"
        assert router.routes == (route,)

    def test_handlers_are_tagged(self):
        router = Router()
        route = router.add_route("GET", "/users", dummy_handler, Passthrough())

        assert all(isinstance(handler, Handler) for handler in route.handlers)
        assert route.handlers[0].name == "dummy_handler"
        assert route.handlers[1].name == "Passthrough"

    def test_requires_a_handler(self):
        with pytest.raises(ValueError, match="at least one handler"):
            Router().add_route("GET", "/users")

    def test_rejects_unknown_method(self):
        with pytest.raises(ValueError, match="Unsupported HTTP method"):
            Router().add_route("BREW", "/coffee", dummy_handler)

    def test_invalid_pattern_fails_at_registration(self):
        with pytest.raises(PatternError):
            Router().get("/files/*/x", dummy_handler)

    def test_verb_helpers(self):
        router = Router()
        for verb in ("get", "post", "put", "delete", "patch", "head", "options", "all"):
            getattr(router, verb)(f"/{verb}", dummy_handler)

        methods = [route.method for route in router.routes]
        assert methods == list(METHODS) + [ALL]

    def test_decorator_form(self):
        """Without handlers, verb helpers return a decorator."""
        router = Router()

        @router.post("/users", name="create_user")
        def create_user(req, res, next):
            res.send("created")

        assert callable(create_user)
        assert create_user.__name__ == "create_user"
        assert router.routes[0].method == "POST"
        assert router.routes[0].name == "create_user"

    def test_all_matches_any_method(self):
        route = Router().all("/health", dummy_handler)
        assert route.matches_method("GET")
        assert route.matches_method("delete")


class TestMiddlewareRegistration:
    """Tests for use(), use_error() and mount()."""

    def test_use_without_prefix(self):
        router = Router()
        router.use(dummy_handler)

        entry = router.middleware[0]
        assert entry.prefix is None
        assert entry.prefix_source == "/"
        assert not entry.is_mount

    def test_use_root_prefix_means_every_path(self):
        router = Router()
        router.use("/", dummy_handler)
        assert router.middleware[0].prefix is None

    def test_use_with_prefix_and_several_targets(self):
        router = Router()
        router.use("/api", dummy_handler, Passthrough())

        assert len(router.middleware) == 2
        assert all(entry.prefix_source == "/api" for entry in router.middleware)

    def test_use_requires_targets(self):
        with pytest.raises(ValueError):
            Router().use("/api")

    def test_use_returns_self(self):
        router = Router()
        assert router.use(dummy_handler) is router

    def test_mount(self):
        parent, child = Router(), Router()
        parent.mount("/child", child)

        assert parent.middleware[0].is_mount
        assert list(parent.children()) == [child]

    def test_mount_rejects_non_router(self):
        with pytest.raises(TypeError):
            Router().mount("/x", dummy_handler)

    def test_use_error(self):
        router = Router()
        router.use_error(dummy_error_handler)

        assert isinstance(router.middleware[0].target, ErrorHandler)
        assert router.middleware[0].target.is_error

    def test_use_error_rejects_ordinary_middleware(self):
        with pytest.raises(TypeError):
            Router().use_error(Passthrough())


class TestHandlerConversion:
    """Tests for to_handler() / to_error_handler()."""

    def test_plain_function(self):
        handler = to_handler(dummy_handler)
        assert isinstance(handler, Handler)
        assert not handler.is_error

    def test_handler_is_unchanged(self):
        handler = Handler(dummy_handler)
        assert to_handler(handler) is handler

    def test_not_callable(self):
        with pytest.raises(TypeError):
            to_handler("nope")

    def test_error_handler_is_never_inferred_from_arity(self):
        """A 4-argument function passed to use() is still an ordinary handler."""
        handler = to_handler(dummy_error_handler)
        assert not handler.is_error

        assert to_error_handler(dummy_error_handler).is_error

    def test_error_handler_function_decorator(self):
        """A tagged error handler passed to use() stays an error handler."""
        tagged = error_handler_function(dummy_error_handler)

        router = Router()
        router.use(tagged)

        assert router.middleware[0].target is tagged
        assert router.middleware[0].target.is_error
        assert tagged.name == "dummy_error_handler"


class TestMounting:
    """Tests for mount cycles."""

    def test_self_mount_is_a_cycle(self):
        router = Router()
        with pytest.raises(MountError):
            router.use("/loop", router)

    def test_indirect_cycle(self):
        a, b, c = Router(name="a"), Router(name="b"), Router(name="c")
        a.use("/b", b)
        b.use("/c", c)

        with pytest.raises(MountError):
            c.use("/a", a)

    def test_same_router_mounted_twice(self):
        """Sharing a router under two prefixes is not a cycle."""
        app, shared = Router(), Router()
        shared.get("/ping", dummy_handler)

        app.use("/v1", shared)
        app.use("/v2", shared)

        assert [path for _, path, _ in app.describe_routes()] == ["/v1/ping", "/v2/ping"]


class TestSealing:
    """Tests for seal()."""

    def test_registration_after_seal(self):
        router = Router()
        router.seal()

        assert router.sealed
        with pytest.raises(RouterSealedError):
            router.get("/late", dummy_handler)
        with pytest.raises(RouterSealedError):
            router.use(dummy_handler)
        with pytest.raises(RouterSealedError):
            router.use_error(dummy_error_handler)

    def test_seal_reaches_mounted_routers(self):
        parent, child, grandchild = Router(), Router(), Router()
        parent.use("/c", child)
        child.use("/g", grandchild)

        parent.seal()

        assert child.sealed and grandchild.sealed
        with pytest.raises(RouterSealedError):
            grandchild.get("/late", dummy_handler)


class TestIntrospection:
    """Tests for url_for(), describe_routes() and allowed_methods()."""

    def test_url_for(self):
        router = Router()
        router.get("/users/:id", dummy_handler, name="user")

        assert router.url_for("user", id="123") == "/users/123"
        assert router.url_for("missing") is None

    def test_url_for_through_mounts(self):
        app, api = Router(), Router()
        api.get("/users/:id", dummy_handler, name="user")
        api.get("/", dummy_handler, name="api_root")
        app.use("/api", api)

        assert app.url_for("user", id=42) == "/api/users/42"
        assert app.url_for("api_root") == "/api"

    def test_url_for_with_prefix_params(self):
        app, api = Router(), Router()
        api.get("/users/:id", dummy_handler, name="user")
        app.use("/v/:version", api)

        assert app.url_for("user", version="2", id="1") == "/v/2/users/1"

    def test_describe_routes(self):
        app, api = Router(), Router()
        app.get("/", dummy_handler)
        api.post("/users", dummy_handler, name="create_user")
        app.use("/api", api)

        assert app.describe_routes() == [
            ("POST", "/api/users", "create_user"),
            ("GET", "/", None),
        ]

    def test_allowed_methods(self):
        router = Router()
        router.get("/users", dummy_handler)
        router.post("/users", dummy_handler)
        router.delete("/users/:id", dummy_handler)

        assert router.allowed_methods("/users") == ["GET", "POST"]
        assert router.allowed_methods("/users/7") == ["DELETE"]
        assert router.allowed_methods("/nothing") == []

    def test_allowed_methods_through_mounts(self):
        app, api = Router(), Router()
        api.put("/items/:id", dummy_handler)
        app.use("/api", api)

        assert app.allowed_methods("/api/items/3") == ["PUT"]

    def test_allowed_methods_with_all_route(self):
        router = Router()
        router.all("/anything", dummy_handler)
        assert router.allowed_methods("/anything") == list(METHODS)
