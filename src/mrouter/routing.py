"""URL routing: path templates, the route registry and route builders.

Templates are plain strings made of literal segments and ``{name}``
placeholders, e.g. ``/user/{id}/post/{slug}``.  Each placeholder spans
exactly one non-empty path segment.  Templates are tokenized into a list
of :class:`Segment` descriptors; no regular expressions are involved in
matching.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mrouter.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from mrouter.handlers import HandlerRef
    from mrouter.middleware import MiddlewareRegistry

logger = logging.getLogger("mrouter.routing")


# ------------------------------------------------------------------
# Path normalization
# ------------------------------------------------------------------


def normalize_uri(uri: str, prefix: str = "") -> str:
    """Join *prefix* and *uri* into the canonical ``/a/b`` form.

    The root is ``/``.  Leading and trailing slashes of both parts are
    dropped, so nesting depth never changes the stored path.
    """
    joined = f"{prefix.strip('/')}/{uri.strip('/')}"
    return "/" + joined.strip("/")


def join_prefix(parent: str, child: str) -> str:
    """Compose a group prefix; the result carries no outer slashes."""
    return f"{parent}/{child.strip('/')}".strip("/")


def split_path(path: str) -> list[str]:
    """Split *path* into segments, ignoring trailing slashes.

    ``"/"`` and ``""`` have no segments.  Interior empty segments are kept
    so that ``/a//b`` never matches ``/a/{x}/b``.
    """
    trimmed = path.rstrip("/")
    if not trimmed:
        return []
    if trimmed.startswith("/"):
        trimmed = trimmed[1:]
    return trimmed.split("/")


# ------------------------------------------------------------------
# Pattern compiler
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Segment:
    """One token of a compiled template.

    Literal:  ``users``  (is_param=False, value="users")
    Param:    ``{id}``   (is_param=True, value="id")
    """

    value: str
    is_param: bool = False


@dataclass(frozen=True, slots=True)
class PathPattern:
    """A compiled template: segment descriptors plus ordered param names."""

    template: str
    segments: tuple[Segment, ...]
    param_names: tuple[str, ...]

    def match(self, path: str) -> tuple[str, ...] | None:
        """Return captured values in declaration order, or ``None``."""
        parts = split_path(path)
        if len(parts) != len(self.segments):
            return None
        values: list[str] = []
        for part, segment in zip(parts, self.segments, strict=True):
            if segment.is_param:
                if not part:
                    return None
                values.append(part)
            elif part != segment.value:
                return None
        return tuple(values)

    def __repr__(self) -> str:
        return f"PathPattern({self.template!r})"


def compile_pattern(template: str) -> PathPattern:
    """Tokenize ``/users/{id}`` into a :class:`PathPattern`.

    Raises :class:`ConfigurationError` for placeholders that do not span a
    whole segment, non-identifier names, stray braces and duplicate names.
    """
    segments: list[Segment] = []
    names: list[str] = []
    for part in split_path(template):
        if "{" not in part and "}" not in part:
            segments.append(Segment(part))
            continue

        name = part[1:-1]
        if not (part.startswith("{") and part.endswith("}")) or "{" in name or "}" in name:
            msg = (
                f"Invalid segment {part!r} in route template {template!r}: "
                "a placeholder must span a whole segment, e.g. /users/{id}"
            )
            raise ConfigurationError(msg)
        if not name.isidentifier():
            msg = f"Invalid placeholder name {name!r} in route template {template!r}"
            raise ConfigurationError(msg)
        if name in names:
            msg = f"Duplicate placeholder {name!r} in route template {template!r}"
            raise ConfigurationError(msg)
        names.append(name)
        segments.append(Segment(name, is_param=True))

    return PathPattern(template, tuple(segments), tuple(names))


class PatternCache:
    """Lazily compiled patterns keyed by raw template, never invalidated."""

    __slots__ = ("_lock", "_patterns")

    def __init__(self) -> None:
        self._patterns: dict[str, PathPattern] = {}
        self._lock = threading.Lock()

    def get(self, template: str) -> PathPattern:
        pattern = self._patterns.get(template)
        if pattern is not None:
            return pattern
        pattern = compile_pattern(template)
        with self._lock:
            return self._patterns.setdefault(template, pattern)

    def __contains__(self, template: object) -> bool:
        return template in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)


# ------------------------------------------------------------------
# Routes
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route.

    ``method``, ``uri`` and ``handler`` never change after registration;
    ``data`` is free-form metadata that route builders may add keys to.
    """

    method: str
    uri: str
    handler: HandlerRef
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        """The ``(method, uri)`` pair middleware bindings are keyed on."""
        return (self.method, self.uri)

    def __repr__(self) -> str:
        return f"Route({self.method!r}, {self.uri!r})"


class RouteRef:
    """Fluent handle on the route(s) created by one registration call.

    Example::

        app.get("/users", "UserController@index") \\
            .name("users.index") \\
            .middleware(["auth"]) \\
            .with_("description", "Displays all users")
    """

    __slots__ = ("_router", "_routes")

    def __init__(self, router: Router, routes: Iterable[Route]) -> None:
        self._router = router
        self._routes: tuple[Route, ...] = tuple(routes)

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    @property
    def uri(self) -> str:
        return self._routes[-1].uri

    def middleware(self, names: str | Iterable[str]) -> RouteRef:
        """Replace the middleware bound to the route(s)."""
        self._router.ensure_open()
        if isinstance(names, str):
            names = [names]
        names = list(names)
        for route in self._routes:
            self._router.middleware.attach(route.method, route.uri, names)
        return self

    def name(self, name: str) -> RouteRef:
        """Register the route's path under *name* (last assignment wins)."""
        self._router.add_named_route(name, self.uri)
        return self

    def with_(self, key: str, value: Any) -> RouteRef:
        """Set one metadata key on the route(s)."""
        self._router.ensure_open()
        for route in self._routes:
            route.data[key] = value
        return self

    def details(self) -> list[dict[str, Any]]:
        """Method, uri, handler and data of every bound route."""
        return [
            {"method": r.method, "uri": r.uri, "handler": r.handler, "data": dict(r.data)}
            for r in self._routes
        ]

    def __repr__(self) -> str:
        methods = ",".join(r.method for r in self._routes)
        return f"RouteRef({methods} {self.uri!r})"


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------


class Router:
    """Per-method ordered route lists with first-match-wins lookup.

    Also owns the group stack (composed prefix plus inherited middleware)
    and the named-route table.  Once :meth:`freeze` is called, any further
    registration raises :class:`ConfigurationError`.
    """

    def __init__(self, middleware: MiddlewareRegistry) -> None:
        self.middleware = middleware
        self.patterns = PatternCache()
        self.named_routes: dict[str, str] = {}
        self._by_method: dict[str, list[Route]] = {}
        self._ordered: list[Route] = []
        self._prefix = ""
        self._group_middleware: tuple[str, ...] = ()
        self._frozen = False

    # -- state ----------------------------------------------------------

    @property
    def routes(self) -> list[Route]:
        """Every route in registration order, across methods."""
        return list(self._ordered)

    def routes_for(self, method: str) -> list[Route]:
        return list(self._by_method.get(method.upper(), ()))

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def group_middleware(self) -> tuple[str, ...]:
        return self._group_middleware

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def ensure_open(self) -> None:
        if self._frozen:
            msg = "Routes cannot be registered after dispatch has started"
            raise ConfigurationError(msg)

    # -- registration ---------------------------------------------------

    def add_route(
        self,
        method: str,
        uri: str,
        handler: HandlerRef,
        data: dict[str, Any] | None = None,
    ) -> Route:
        """Append a route and bind the active group's middleware to it."""
        self.ensure_open()
        method = method.upper()
        uri = normalize_uri(uri, self._prefix)
        # Reject bad templates now rather than on the first request.
        compile_pattern(uri)

        route = Route(method, uri, handler, dict(data or {}))
        self._by_method.setdefault(method, []).append(route)
        self._ordered.append(route)

        if self._group_middleware:
            self.middleware.attach(method, uri, list(self._group_middleware))

        logger.debug("Registered %s %s -> %r", method, uri, handler)
        return route

    @contextmanager
    def group(self, prefix: str, middleware: Iterable[str] = ()) -> Iterator[None]:
        """Scope a prefix and middleware list over the enclosed registrations.

        The previous prefix and middleware are restored on every exit path.
        """
        self.ensure_open()
        saved = (self._prefix, self._group_middleware)
        self._prefix = join_prefix(self._prefix, prefix)
        self._group_middleware = (*self._group_middleware, *middleware)
        try:
            yield
        finally:
            self._prefix, self._group_middleware = saved

    def add_named_route(self, name: str, uri: str) -> None:
        self.ensure_open()
        self.named_routes[name] = uri

    def lookup_named_route(self, name: str) -> str | None:
        return self.named_routes.get(name)

    # -- matching -------------------------------------------------------

    def match(self, method: str, path: str) -> tuple[Route, tuple[str, ...]] | None:
        """Return ``(route, values)`` for the first match, or ``None``.

        *path* must already be normalized.  Registration order is the only
        tie-break between overlapping templates.
        """
        for route in self._by_method.get(method.upper(), ()):
            values = self.patterns.get(route.uri).match(path)
            if values is not None:
                return route, values
        return None
