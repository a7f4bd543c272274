"""Handler references and their resolution to callables.

A route handler is one of three closed forms:

- :class:`CallableHandler`: any Python callable, invoked directly.
- :class:`ControllerHandler`: a controller class (or the name it was
  registered under) plus a method name.  A fresh instance is created for
  each invocation.
- :class:`TemplateHandler`: a template name handed to the view renderer.

Controller names are only looked up in an explicit
:class:`ControllerRegistry`; nothing is ever imported by name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from mrouter.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T", bound=type)


@dataclass(frozen=True, slots=True)
class CallableHandler:
    func: Callable[..., Any]


@dataclass(frozen=True, slots=True)
class ControllerHandler:
    controller: type | str
    method: str

    @property
    def controller_name(self) -> str:
        if isinstance(self.controller, str):
            return self.controller
        return self.controller.__name__


@dataclass(frozen=True, slots=True)
class TemplateHandler:
    template: str


HandlerRef = CallableHandler | ControllerHandler | TemplateHandler


def parse_handler(handler: Any, *, allow_template: bool = True) -> HandlerRef:
    """Turn a registration-time handler into a :data:`HandlerRef`.

    Accepted forms::

        lambda id: ...                    -> CallableHandler
        "UserController@show"             -> ControllerHandler("UserController", "show")
        (UserController, "show")          -> ControllerHandler(UserController, "show")
        "users/index"                     -> TemplateHandler("users/index")
    """
    if isinstance(handler, CallableHandler | ControllerHandler | TemplateHandler):
        return handler

    if isinstance(handler, str):
        if "@" in handler:
            controller, _, method = handler.partition("@")
            if not controller or not method:
                msg = f"Invalid controller reference {handler!r}; expected 'Controller@method'"
                raise ConfigurationError(msg)
            return ControllerHandler(controller, method)
        if allow_template and handler:
            return TemplateHandler(handler)
        msg = f"Handler {handler!r} is not a callable or a 'Controller@method' reference"
        raise ConfigurationError(msg)

    if isinstance(handler, tuple | list) and len(handler) == 2:
        controller, method = handler
        if isinstance(controller, type | str) and isinstance(method, str):
            return ControllerHandler(controller, method)

    if callable(handler):
        return CallableHandler(handler)

    msg = f"Handler {handler!r} is not invocable"
    raise ConfigurationError(msg)


class ControllerRegistry:
    """Name -> controller class table used for ``"Name@method"`` references."""

    __slots__ = ("_controllers",)

    def __init__(self) -> None:
        self._controllers: dict[str, type] = {}

    def register(self, cls: T, name: str | None = None) -> T:
        self._controllers[name or cls.__name__] = cls
        return cls

    def get(self, name: str) -> type | None:
        return self._controllers.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._controllers


def resolve_handler(ref: HandlerRef, controllers: ControllerRegistry) -> Callable[..., Any]:
    """Return the callable behind *ref*.

    Raises :class:`ConfigurationError` when a controller is unknown, lacks
    the method, or the result is not callable.  Template handlers are not
    resolvable here; the dispatcher renders them.
    """
    if isinstance(ref, CallableHandler):
        return ref.func

    if isinstance(ref, TemplateHandler):
        msg = f"Template handler {ref.template!r} has no callable form"
        raise ConfigurationError(msg)

    cls = ref.controller
    if isinstance(cls, str):
        found = controllers.get(cls)
        if found is None:
            msg = f"Controller {cls!r} is not registered"
            raise ConfigurationError(msg)
        cls = found

    instance = cls()
    bound = getattr(instance, ref.method, None)
    if bound is None:
        msg = f"Method {ref.method!r} not found in {cls.__name__}"
        raise ConfigurationError(msg)
    if not callable(bound):
        msg = f"{cls.__name__}.{ref.method} is not callable"
        raise ConfigurationError(msg)
    return bound


def describe(ref: HandlerRef) -> str:
    """Short human-readable label, used by logs and the CLI route table."""
    if isinstance(ref, CallableHandler):
        return getattr(ref.func, "__qualname__", repr(ref.func))
    if isinstance(ref, ControllerHandler):
        return f"{ref.controller_name}@{ref.method}"
    return f"view:{ref.template}"
