"""Tests for mrouter.handlers: handler forms and resolution."""

from __future__ import annotations

import pytest

from mrouter.errors import ConfigurationError
from mrouter.handlers import (
    CallableHandler,
    ControllerHandler,
    ControllerRegistry,
    TemplateHandler,
    describe,
    parse_handler,
    resolve_handler,
)


class PostController:
    def __init__(self) -> None:
        self.instances = 1

    def index(self) -> str:
        return "posts"


def hello() -> str:
    return "hello"


class TestParseHandler:
    def test_callable(self) -> None:
        assert parse_handler(hello) == CallableHandler(hello)

    def test_controller_string(self) -> None:
        assert parse_handler("PostController@index") == ControllerHandler("PostController", "index")

    @pytest.mark.parametrize("bad", ["@index", "PostController@"])
    def test_incomplete_controller_string(self, bad: str) -> None:
        with pytest.raises(ConfigurationError, match="Controller@method"):
            parse_handler(bad)

    def test_class_pair(self) -> None:
        assert parse_handler((PostController, "index")) == ControllerHandler(PostController, "index")
        assert parse_handler(["PostController", "index"]) == ControllerHandler("PostController", "index")

    def test_template(self) -> None:
        assert parse_handler("posts/index") == TemplateHandler("posts/index")

    def test_template_disallowed(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_handler("posts/index", allow_template=False)

    def test_existing_ref_passthrough(self) -> None:
        ref = TemplateHandler("x")
        assert parse_handler(ref) is ref

    @pytest.mark.parametrize("bad", [None, 3, ("a", "b", "c"), ""])
    def test_not_invocable(self, bad: object) -> None:
        with pytest.raises(ConfigurationError):
            parse_handler(bad)


class TestResolveHandler:
    def test_callable(self) -> None:
        assert resolve_handler(CallableHandler(hello), ControllerRegistry()) is hello

    def test_registered_name(self) -> None:
        controllers = ControllerRegistry()
        controllers.register(PostController)
        assert "PostController" in controllers
        bound = resolve_handler(ControllerHandler("PostController", "index"), controllers)
        assert bound() == "posts"

    def test_fresh_instance_per_resolution(self) -> None:
        ref = ControllerHandler(PostController, "index")
        first = resolve_handler(ref, ControllerRegistry())
        second = resolve_handler(ref, ControllerRegistry())
        assert first.__self__ is not second.__self__

    def test_unknown_name(self) -> None:
        with pytest.raises(ConfigurationError, match="not registered"):
            resolve_handler(ControllerHandler("Nope", "index"), ControllerRegistry())

    def test_template_has_no_callable_form(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve_handler(TemplateHandler("x"), ControllerRegistry())


def test_describe() -> None:
    assert describe(CallableHandler(hello)) == "hello"
    assert describe(ControllerHandler(PostController, "index")) == "PostController@index"
    assert describe(TemplateHandler("posts/index")) == "view:posts/index"
