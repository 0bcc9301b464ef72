"""
Unit tests for the dispatch pipeline: resolution order, next() semantics,
error propagation and default responses.
"""

import logging

import pytest

from sprout import App, AppConfig, HTTPError, Request, Router
from sprout.dispatch import DispatchContext, DispatchState, resolve
from sprout.http.response import Response
from sprout.middleware.base import ErrorMiddleware


def make_request(method: str, path: str, **kwargs) -> Request:
    """Helper to create a request for testing."""
    return Request(method, path, **kwargs)


def recorder(calls, label, finish=False):
    """Handler that records its label, then continues or finishes."""
    def handler(req, res, next):
        calls.append(label)
        if finish:
            res.send(label)
        else:
            next()
    handler.__name__ = f"record_{label}"
    return handler


class TestBasicDispatch:
    """Tests for route matching through App.handle()."""

    def test_route_with_params(self, app):
        @app.get("/users/:id")
        def show_user(req, res, next):
            res.json({"id": req.params["id"]})

        res = app.handle(make_request("GET", "/users/42"))

        assert res.status_code == 200
        assert res.body == b'{"id":"42"}'
        assert res.finalized

    def test_default_404(self, app):
        res = app.handle(make_request("GET", "/nope"))

        assert res.status_code == 404
        assert res.text == "Cannot GET /nope"
        assert res.get("Content-Type") == "text/plain; charset=utf-8"

    def test_method_must_match(self, app):
        app.post("/users", recorder([], "post", finish=True))

        res = app.handle(make_request("GET", "/users"))
        assert res.status_code == 404

    def test_head_does_not_fall_back_to_get(self, app):
        app.get("/page", recorder([], "get", finish=True))
        assert app.handle(make_request("HEAD", "/page")).status_code == 404

    def test_registration_order_beats_specificity(self, app):
        calls = []
        app.get("/users/:id", recorder(calls, "param", finish=True))
        app.get("/users/me", recorder(calls, "literal", finish=True))

        res = app.handle(make_request("GET", "/users/me"))

        assert res.text == "param"
        assert calls == ["param"]

    def test_route_handler_chain(self, app):
        calls = []
        app.get("/chain", recorder(calls, "a"), recorder(calls, "b"), recorder(calls, "c", finish=True))

        app.handle(make_request("GET", "/chain"))
        assert calls == ["a", "b", "c"]

    def test_deterministic(self, app):
        """Same tree + same request → identical output."""
        app.use(recorder([], "mw"))
        app.get("/users/:id", lambda req, res, next: res.json(dict(req.params)))

        first = app.handle(make_request("GET", "/users/7"))
        second = app.handle(make_request("GET", "/users/7"))

        assert first.status_code == second.status_code
        assert first.header_items() == second.header_items()
        assert first.body == second.body

    def test_x_powered_by(self, app):
        assert app.handle(make_request("GET", "/")).get("X-Powered-By") == "Sprout"

        quiet = App(AppConfig(x_powered_by=False))
        assert quiet.handle(make_request("GET", "/")).get("X-Powered-By") is None


class TestNext:
    """Tests for next() semantics."""

    def test_middleware_then_route(self, app):
        calls = []
        app.use(recorder(calls, "first"))
        app.use(recorder(calls, "second"))
        app.get("/", recorder(calls, "route", finish=True))

        app.handle(make_request("GET", "/"))
        assert calls == ["first", "second", "route"]

    def test_all_middleware_before_routes_of_the_same_level(self, app):
        """Middleware registered after a route still runs before it."""
        calls = []
        app.get("/", recorder(calls, "route", finish=True))
        app.use(recorder(calls, "late_mw"))

        app.handle(make_request("GET", "/"))
        assert calls == ["late_mw", "route"]

    def test_finalizing_stops_the_pipeline(self, app):
        calls = []
        app.use(recorder(calls, "gate", finish=True))
        app.get("/", recorder(calls, "route", finish=True))

        res = app.handle(make_request("GET", "/"))

        assert calls == ["gate"]
        assert res.text == "gate"

    def test_double_next_is_ignored(self, app, caplog):
        calls = []

        def eager(req, res, next):
            next()
            next()

        app.use(eager)
        app.get("/", recorder(calls, "route", finish=True))

        with caplog.at_level(logging.WARNING, logger="sprout.dispatch"):
            res = app.handle(make_request("GET", "/"))

        assert calls == ["route"]
        assert res.status_code == 200
        assert "repeated next()" in caplog.text

    def test_stale_next_is_ignored(self, app, caplog):
        calls = []
        saved = {}

        def stash(req, res, next):
            saved["next"] = next
            next()

        def reuse(req, res, next):
            calls.append("reuse")
            saved["next"]()          # belongs to an earlier invocation
            res.send("done")

        app.use(stash)
        app.use(reuse)
        app.get("/", recorder(calls, "route", finish=True))

        with caplog.at_level(logging.WARNING, logger="sprout.dispatch"):
            res = app.handle(make_request("GET", "/"))

        assert calls == ["reuse"]
        assert res.text == "done"
        assert "stale next()" in caplog.text

    def test_next_after_finalize_is_ignored(self, app):
        calls = []

        def send_then_next(req, res, next):
            res.send("sent")
            next()

        app.use(send_then_next)
        app.use(recorder(calls, "never"))

        res = app.handle(make_request("GET", "/"))
        assert calls == []
        assert res.text == "sent"

    def test_return_without_next_ends_response(self, app):
        """Streaming writes then returning sends what was written."""
        def stream(req, res, next):
            res.write("part 1, ")
            res.write("part 2")

        app.get("/stream", stream)
        res = app.handle(make_request("GET", "/stream"))

        assert res.finalized
        assert res.status_code == 200
        assert res.text == "part 1, part 2"

    def test_next_route_skips_rest_of_chain(self, app):
        calls = []

        def skip(req, res, next):
            calls.append("skip")
            next("route")

        app.get("/item", skip, recorder(calls, "skipped", finish=True))
        app.use(recorder(calls, "after"))

        res = app.handle(make_request("GET", "/item"))

        assert calls == ["after", "skip"]
        assert res.status_code == 404

    def test_deep_middleware_stack_does_not_recurse(self, app):
        """next() is a loop, not recursion: thousands of layers are fine."""
        for _ in range(5000):
            app.use(lambda req, res, next: next())
        app.get("/", lambda req, res, next: res.send("deep"))

        assert app.handle(make_request("GET", "/")).text == "deep"


class TestErrorPropagation:
    """Tests for next(err), raised exceptions and error handlers."""

    def test_next_err_skips_to_error_handler(self, app):
        calls = []
        boom = RuntimeError("boom")

        app.use(lambda req, res, next: next(boom))
        app.use(recorder(calls, "skipped"))

        def on_error(err, req, res, next):
            calls.append(err)
            res.status(500).send("handled")

        app.use_error(on_error)

        res = app.handle(make_request("GET", "/"))

        assert calls == [boom]
        assert res.text == "handled"

    def test_route_errors_skip_error_handlers_of_the_same_level(self, app):
        """Routes of a level run after all of its middleware, error handlers included."""
        calls = []
        app.use_error(lambda err, req, res, next: calls.append("error"))
        app.get("/", lambda req, res, next: next(RuntimeError()))

        res = app.handle(make_request("GET", "/"))

        assert calls == []
        assert res.status_code == 500

    def test_error_handlers_skipped_without_error(self, app):
        calls = []
        app.use_error(lambda err, req, res, next: calls.append("error"))
        app.get("/", recorder(calls, "route", finish=True))

        app.handle(make_request("GET", "/"))
        assert calls == ["route"]

    def test_raised_exception_becomes_next_err(self, app):
        seen = []
        api = Router()

        @api.get("/explode")
        def explode(req, res, next):
            raise ValueError("bad value")

        def on_error(err, req, res, next):
            seen.append(err)
            res.status(400).send(str(err))

        app.use(api)
        app.use_error(on_error)

        res = app.handle(make_request("GET", "/explode"))

        assert isinstance(seen[0], ValueError)
        assert res.status_code == 400
        assert res.text == "bad value"

    def test_raise_overrides_earlier_next(self, app):
        seen = []

        def next_then_raise(req, res, next):
            next()
            raise KeyError("late")

        app.use(next_then_raise)
        app.get("/", recorder([], "route", finish=True))
        app.use_error(lambda err, req, res, next: seen.append(err) or res.send("err"))

        res = app.handle(make_request("GET", "/"))

        assert isinstance(seen[0], KeyError)
        assert res.text == "err"

    def test_unhandled_error_is_500_and_logged(self, app, caplog):
        app.get("/", lambda req, res, next: next(RuntimeError("secret detail")))

        with caplog.at_level(logging.ERROR, logger="sprout.dispatch"):
            res = app.handle(make_request("GET", "/"))

        assert res.status_code == 500
        assert res.text == "Internal Server Error"
        assert "secret detail" not in res.text
        assert "Unhandled error" in caplog.text
        assert caplog.records[-1].exc_info is not None

    def test_unhandled_http_error_keeps_status(self, app):
        def missing(req, res, next):
            raise HTTPError(404, "No such user")

        app.get("/users/:id", missing)
        res = app.handle(make_request("GET", "/users/0"))

        assert res.status_code == 404
        assert res.text == "No such user"

    def test_unhandled_5xx_http_error_hides_message(self, app):
        app.get("/", lambda req, res, next: next(HTTPError(503, "db down")))
        res = app.handle(make_request("GET", "/"))

        assert res.status_code == 503
        assert res.text == "Service Unavailable"

    def test_error_handler_can_forward(self, app):
        calls = []

        def first(err, req, res, next):
            calls.append("first")
            next(err)

        def second(err, req, res, next):
            calls.append("second")
            res.status(502).send("second")

        app.use(lambda req, res, next: next(RuntimeError()))
        app.use_error(first)
        app.use_error(second)

        res = app.handle(make_request("GET", "/"))

        assert calls == ["first", "second"]
        assert res.status_code == 502

    def test_error_handler_next_resumes_normal_flow(self, app):
        calls = []

        app.use(lambda req, res, next: next(RuntimeError("recoverable")))
        app.use_error(lambda err, req, res, next: next())
        app.get("/", recorder(calls, "route", finish=True))

        res = app.handle(make_request("GET", "/"))

        assert calls == ["route"]
        assert res.text == "route"

    def test_error_middleware_instance(self, app):
        class Render(ErrorMiddleware):
            def __call__(self, err, req, res, next):
                res.status(418).send(type(err).__name__)

        app.use(lambda req, res, next: next(LookupError()))
        app.use(Render())

        res = app.handle(make_request("GET", "/"))
        assert res.status_code == 418
        assert res.text == "LookupError"

    def test_error_after_finalize_is_logged_only(self, app, caplog):
        def send_then_fail(req, res, next):
            res.send("ok")
            raise RuntimeError("too late")

        app.get("/", send_then_fail)

        with caplog.at_level(logging.ERROR, logger="sprout.dispatch"):
            res = app.handle(make_request("GET", "/"))

        assert res.status_code == 200
        assert res.text == "ok"
        assert "after the response was sent" in caplog.text

    def test_double_send_is_logged_only(self, app):
        def double(req, res, next):
            res.send("first")
            res.send("second")

        app.get("/", double)
        res = app.handle(make_request("GET", "/"))

        assert res.text == "first"

    def test_default_error_replaces_stale_content_length(self, app):
        def declare_then_fail(req, res, next):
            res.set("Content-Length", "999")
            raise RuntimeError("boom")

        app.get("/", declare_then_fail)
        res = app.handle(make_request("GET", "/"))

        assert res.status_code == 500
        assert res.text == "Internal Server Error"
        assert res.get("Content-Length") == str(len(res.body))

    def test_default_not_found_replaces_stale_content_length(self, app):
        def declare_then_continue(req, res, next):
            res.set("Content-Length", "999")
            next()

        app.use(declare_then_continue)
        res = app.handle(make_request("GET", "/missing"))

        assert res.status_code == 404
        assert res.get("Content-Length") == str(len(res.body))

    def test_error_handler_returning_without_next(self, app, caplog):
        """The pending error still gets the default 500 response."""
        api = Router()
        api.get("/divide", lambda req, res, next: 1 / 0)
        app.use("/api", api)
        app.use_error(lambda err, req, res, next: None)

        with caplog.at_level(logging.WARNING, logger="sprout.dispatch"):
            res = app.handle(make_request("GET", "/api/divide"))

        assert res.status_code == 500
        assert res.text == "Internal Server Error"
        assert "returned without handling the error" in caplog.text


class TestMountedDispatch:
    """Tests for prefixes and mounted routers."""

    def test_mounted_router(self, app):
        seen = {}
        api = Router()

        @api.get("/users")
        def users(req, res, next):
            seen.update(path=req.path, base_url=req.base_url, relative=req.relative_path)
            res.send("users")

        app.use("/api", api)
        res = app.handle(make_request("GET", "/api/users"))

        assert res.text == "users"
        assert seen == {"path": "/api/users", "base_url": "/api", "relative": "/users"}

    def test_nested_mounts(self, app):
        v1, users = Router(), Router()
        users.get("/:id", lambda req, res, next: res.send(req.base_url + " " + req.params["id"]))
        v1.use("/users", users)
        app.use("/v1", v1)

        assert app.handle(make_request("GET", "/v1/users/9")).text == "/v1/users 9"

    def test_prefix_respects_segment_boundary(self, app):
        calls = []
        app.use("/api", recorder(calls, "api_mw"))

        app.handle(make_request("GET", "/apis"))
        app.handle(make_request("GET", "/api/x"))

        assert calls == ["api_mw"]

    def test_mount_params_merge_into_route_params(self, app):
        posts = Router()
        posts.get("/posts/:post_id", lambda req, res, next: res.json(dict(req.params)))
        app.use("/users/:user_id", posts)

        res = app.handle(make_request("GET", "/users/3/posts/8"))
        assert res.body == b'{"user_id":"3","post_id":"8"}'

    def test_mounted_router_falls_through(self, app):
        """A mounted router with no matching route continues the parent chain."""
        api = Router()
        api.get("/users", lambda req, res, next: res.send("users"))
        app.use("/api", api)
        app.get("/api/other", lambda req, res, next: res.send("parent"))

        assert app.handle(make_request("GET", "/api/other")).text == "parent"

    def test_params_are_per_layer_and_read_only(self, app):
        seen = []

        def mw(req, res, next):
            seen.append(dict(req.params))
            next()

        def route(req, res, next):
            seen.append(dict(req.params))
            with pytest.raises(TypeError):
                req.params["id"] = "x"
            res.send("ok")

        app.use(mw)
        app.get("/items/:id", route)
        app.handle(make_request("GET", "/items/5"))

        assert seen == [{}, {"id": "5"}]


class TestRoutingSettings:
    """Case sensitivity and strict routing toggles."""

    def test_case_insensitive_by_default(self, app):
        app.get("/foo", lambda req, res, next: res.send("foo"))
        assert app.handle(make_request("GET", "/Foo")).status_code == 200

    def test_case_sensitive(self):
        app = App(AppConfig(case_sensitive_routing=True))
        app.get("/foo", lambda req, res, next: res.send("foo"))

        assert app.handle(make_request("GET", "/Foo")).status_code == 404
        assert app.handle(make_request("GET", "/foo")).status_code == 200

    def test_trailing_slash_ignored_by_default(self, app):
        app.get("/foo", lambda req, res, next: res.send("foo"))
        assert app.handle(make_request("GET", "/foo/")).status_code == 200

    def test_strict_routing(self):
        app = App(AppConfig(strict_routing=True))
        app.get("/foo", lambda req, res, next: res.send("foo"))

        assert app.handle(make_request("GET", "/foo/")).status_code == 404
        assert app.handle(make_request("GET", "/foo")).status_code == 200


class TestOptionsDefault:
    """Unmatched OPTIONS requests."""

    def test_options_lists_allowed_methods(self, app):
        app.get("/users", lambda req, res, next: res.send("list"))
        app.post("/users", lambda req, res, next: res.send("create"))

        res = app.handle(make_request("OPTIONS", "/users"))

        assert res.status_code == 200
        assert res.get("Allow") == "GET, POST"
        assert res.text == "GET, POST"

    def test_options_unknown_path_is_404(self, app):
        res = app.handle(make_request("OPTIONS", "/nothing"))
        assert res.status_code == 404
        assert res.text == "Cannot OPTIONS /nothing"


class TestResolution:
    """Tests for resolve() and DispatchContext directly."""

    def test_layer_order(self):
        calls = []
        app, api = Router(), Router()
        api.use(recorder(calls, "auth"))
        api.get("/users/:id", recorder(calls, "load"), recorder(calls, "show"))
        app.use(recorder(calls, "logger"))
        app.use("/api", api)
        app.get("/api/users/:id", recorder(calls, "fallback"))
        app.use_error(lambda err, req, res, next: None)

        layers = resolve(app, "GET", "/api/users/7")

        names = [layer.handler.name for layer in layers]
        assert names == [
            "record_logger", "record_auth", "record_load", "record_show",
            "<lambda>", "record_fallback",
        ]
        assert layers[4].is_error
        assert dict(layers[2].params) == {"id": "7"}
        assert layers[2].base_url == "/api"
        assert layers[2].route is not None

    def test_only_first_matching_route_per_level(self):
        router = Router()
        router.get("/x", recorder([], "one"))
        router.get("/x", recorder([], "two"))

        layers = resolve(router, "GET", "/x")
        assert [layer.handler.name for layer in layers] == ["record_one"]

    def test_context_state(self):
        router = Router()
        router.get("/", lambda req, res, next: res.send("ok"))
        request, response = make_request("GET", "/"), Response()

        context = DispatchContext(router, resolve(router, "GET", "/"), request, response)
        assert context.state is DispatchState.RUNNING

        context.run()
        assert context.state is DispatchState.FINALIZED
        assert response.text == "ok"
