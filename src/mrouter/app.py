"""The MRouter application: route registration, dispatch and ASGI serving.

An :class:`MRouter` instance owns every piece of routing state (routes,
middleware, named routes, pattern cache).  Its lifecycle is::

    app = MRouter()             # construct
    app.get("/hello", hello)    # register
    app.freeze()                # optional; the first dispatch freezes
    app.dispatch("GET", "/hello")

After freezing the instance is read-only and may be shared by threads that
dispatch concurrently.
"""

from __future__ import annotations

import asyncio
import contextvars
import enum
import logging
import sys
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mrouter import helpers
from mrouter.config import RouterConfig
from mrouter.errors import ConfigurationError, NamedRouteNotFound
from mrouter.handlers import (
    CallableHandler,
    ControllerRegistry,
    TemplateHandler,
    describe,
    parse_handler,
    resolve_handler,
)
from mrouter.middleware import MiddlewareRegistry
from mrouter.request import Request, current_request, get_current_request, set_current_request
from mrouter.response import JSONResponse, Response, to_response
from mrouter.routing import Route, RouteRef, Router, compile_pattern, normalize_uri, split_path
from mrouter.validation import validate_handler_signature

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from contextlib import AbstractContextManager

    from mrouter._types import Receive, Scope, Send, ViewRenderer
    from mrouter.handlers import HandlerRef

logger = logging.getLogger("mrouter.dispatch")


class Outcome(enum.Enum):
    HANDLED = "handled"
    NOT_FOUND = "not_found"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What a single dispatch produced.

    ``body`` is the handler's return value (or the not-found output);
    it is ``None`` when a middleware aborted.
    """

    outcome: Outcome
    body: Any = None
    status_code: int = 200
    route: Route | None = None
    params: dict[str, str] = field(default_factory=dict)

    @property
    def handled(self) -> bool:
        return self.outcome is not Outcome.ABORTED


class MRouter:
    """Method + path router with groups, named middleware and named routes.

    Parameters
    ----------
    config:
        A :class:`RouterConfig`; keyword overrides are applied on top of it
        (``MRouter(base_path="/app", strict=True)``).
    """

    def __init__(self, config: RouterConfig | None = None, **overrides: Any) -> None:
        self.config = (config or RouterConfig()).merged(**overrides)
        self.middleware = MiddlewareRegistry()
        self.controllers = ControllerRegistry()
        self.router = Router(self.middleware)
        self._not_found: HandlerRef | None = None
        self._view_renderer: ViewRenderer | None = None

    # ------------------------------------------------------------------
    # Route registration
    # ------------------------------------------------------------------

    def add_route(
        self,
        method: str,
        path: str,
        handler: Any,
        data: dict[str, Any] | None = None,
    ) -> RouteRef:
        return RouteRef(self.router, [self._register(method, path, handler, data)])

    def _register(self, method: str, path: str, handler: Any, data: dict[str, Any] | None) -> Route:
        ref = parse_handler(handler)
        if self.config.strict and isinstance(ref, CallableHandler):
            uri = normalize_uri(path, self.router.prefix)
            validate_handler_signature(ref.func, compile_pattern(uri).param_names, method.upper(), uri)
        return self.router.add_route(method, path, ref, data)

    def get(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("GET", path, handler, data)

    def post(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("POST", path, handler, data)

    def put(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("PUT", path, handler, data)

    def delete(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("DELETE", path, handler, data)

    def patch(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("PATCH", path, handler, data)

    def options(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("OPTIONS", path, handler, data)

    def head(self, path: str, handler: Any, data: dict[str, Any] | None = None) -> RouteRef:
        return self.add_route("HEAD", path, handler, data)

    def match(
        self,
        methods: str | Iterable[str],
        path: str,
        handler: Any,
        data: dict[str, Any] | None = None,
    ) -> RouteRef:
        """Register the same handler for several methods.

        The returned reference applies to every route created here.
        """
        if isinstance(methods, str):
            methods = [methods]
        routes = [self._register(method, path, handler, data) for method in methods]
        if not routes:
            msg = f"match() needs at least one method for {path!r}"
            raise ConfigurationError(msg)
        return RouteRef(self.router, routes)

    def uri(self, path: str, data: dict[str, Any] | None = None) -> RouteRef:
        """Register a GET route that renders a view.

        The template is ``data["view"]`` when given, otherwise the path
        itself without its leading slash (``"index"`` for the root).
        """
        data = dict(data or {})
        template = data.get("view") or normalize_uri(path, self.router.prefix).strip("/") or "index"
        return self.add_route("GET", path, TemplateHandler(template), data)

    def route(
        self,
        methods: str | Iterable[str],
        path: str,
        *,
        name: str | None = None,
        middleware: Iterable[str] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`match`."""
        if isinstance(methods, str):
            methods = [methods]

        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            ref = self.match(methods, path, handler, data)
            if middleware is not None:
                ref.middleware(middleware)
            if name is not None:
                ref.name(name)
            return handler

        return decorator

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def group(self, prefix: str, middleware: Iterable[str], body: Callable[[], Any]) -> None:
        """Run *body* with *prefix* and *middleware* applied to its routes."""
        with self.router.group(prefix, middleware):
            body()

    def group_context(self, prefix: str, middleware: Iterable[str] = ()) -> AbstractContextManager[None]:
        """``with`` form of :meth:`group`."""
        return self.router.group(prefix, middleware)

    # ------------------------------------------------------------------
    # Middleware, controllers, fallbacks
    # ------------------------------------------------------------------

    def register_middleware(self, name: str, handler: Any) -> None:
        self.middleware.register(name, handler)

    def attach_middleware(self, method: str, path: str, names: Iterable[str]) -> None:
        """Replace the middleware bound to one registered route."""
        self.router.ensure_open()
        self.middleware.attach(method, normalize_uri(path), names)

    def register_controller(self, cls: type | None = None, *, name: str | None = None) -> Any:
        """Make *cls* available to ``"Name@method"`` handlers.

        Usable directly or as a class decorator, with or without ``name=``.
        """
        if cls is None:
            return lambda c: self.controllers.register(c, name)
        return self.controllers.register(cls, name)

    def not_found(self, handler: Any) -> Any:
        """Set the handler invoked when no route matches.  Returns *handler*."""
        self._not_found = parse_handler(handler)
        return handler

    def set_view_renderer(self, renderer: ViewRenderer) -> None:
        """Set ``renderer(template, data)`` used for template-name handlers."""
        self._view_renderer = renderer

    def set_base_path(self, path: str) -> None:
        self.router.ensure_open()
        self.config = self.config.merged(base_path=path)

    # ------------------------------------------------------------------
    # Named routes & introspection
    # ------------------------------------------------------------------

    def view(self, name: str) -> str | None:
        """Path registered under *name*, or ``None``."""
        return self.router.lookup_named_route(name)

    def url_for(self, name: str, **params: Any) -> str:
        """Path registered under *name* with placeholders filled from *params*."""
        uri = self.router.lookup_named_route(name)
        if uri is None:
            raise NamedRouteNotFound(name)
        pattern = self.router.patterns.get(uri)
        missing = [p for p in pattern.param_names if p not in params]
        if missing:
            msg = f"Route {name!r} needs values for: {', '.join(missing)}"
            raise ValueError(msg)
        parts = [str(params[s.value]) if s.is_param else s.value for s in pattern.segments]
        return "/" + "/".join(parts)

    @property
    def routes(self) -> list[Route]:
        return self.router.routes

    def routes_for(self, method: str) -> list[Route]:
        return self.router.routes_for(method)

    def iter_route_table(self) -> Iterator[tuple[Route, str | None, tuple[str, ...]]]:
        """Yield ``(route, names, middleware)`` for every route, in order.

        *names* joins every name registered for the route's path with
        ``", "``, or is ``None`` when the path has none.
        """
        names: dict[str, list[str]] = {}
        for name, uri in self.router.named_routes.items():
            names.setdefault(uri, []).append(name)
        for route in self.router.routes:
            joined = ", ".join(names[route.uri]) if route.uri in names else None
            yield route, joined, self.middleware.bound(route.method, route.uri)

    def assets(self, path: str) -> str:
        return helpers.assets(path, self.config.asset_root)

    def path(self, path: str, relative: bool = True) -> str:
        return helpers.path(path, relative, self.config.document_root)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def freeze(self) -> None:
        """End the registration phase."""
        if not self.router.frozen:
            self.router.freeze()
            logger.debug("Frozen with %d route(s)", len(self.router.routes))

    def dispatch(self, method: str | None = None, path: str | None = None) -> DispatchResult:
        """Route one request and run its middleware and handler.

        When *method* or *path* is omitted it is taken from the current
        request (see :mod:`mrouter.request`).  Configuration errors and
        exceptions raised by handlers propagate.
        """
        if method is None or path is None:
            request = current_request()
            method = method or request.method
            path = path if path is not None else request.target

        self.freeze()
        method = method.upper()
        path = self.normalize_path(path)

        found = self.router.match(method, path)
        if found is None:
            return self._handle_not_found(method, path)

        route, values = found
        params = dict(zip(self.router.patterns.get(route.uri).param_names, values, strict=True))
        request = get_current_request()
        if request is not None:
            request.path_params = dict(params)
        logger.debug("Matched %s %s -> %s", method, path, route.uri)

        if not self.middleware.run_chain(route.method, route.uri, self._resolve):
            return DispatchResult(Outcome.ABORTED, None, self.config.abort_status, route, params)

        body = self._invoke(route, values)
        return DispatchResult(Outcome.HANDLED, body, 200, route, params)

    def normalize_path(self, path: str) -> str:
        """Strip query, fragment and base path, then trailing slashes."""
        path = path.split("?", 1)[0].split("#", 1)[0]
        if not path.startswith("/"):
            path = "/" + path
        base = self.config.base_path
        if base and (path == base or path.startswith(base + "/")):
            path = path[len(base) :]
        return "/" + "/".join(split_path(path))

    def _resolve(self, ref: HandlerRef) -> Callable[..., Any]:
        try:
            return resolve_handler(ref, self.controllers)
        except ConfigurationError:
            logger.error("Cannot resolve handler %s", describe(ref))
            raise

    def _invoke(self, route: Route, values: tuple[str, ...]) -> Any:
        if isinstance(route.handler, TemplateHandler):
            return self._render(route.handler.template, route.data)
        return self._resolve(route.handler)(*values)

    def _render(self, template: str, data: dict[str, Any]) -> Any:
        if self._view_renderer is None:
            msg = f"No view renderer configured for template {template!r}"
            logger.error(msg)
            raise ConfigurationError(msg)
        return self._view_renderer(template, dict(data))

    def _handle_not_found(self, method: str, path: str) -> DispatchResult:
        logger.debug("No route for %s %s", method, path)
        status = self.config.not_found_status
        if self._not_found is None:
            body = f"404 Not Found: no route matches {method} {path}"
        elif isinstance(self._not_found, TemplateHandler):
            body = self._render(self._not_found.template, {"method": method, "path": path})
        else:
            body = self._resolve(self._not_found)()
        return DispatchResult(Outcome.NOT_FOUND, body, status)

    # ------------------------------------------------------------------
    # ASGI interface
    # ------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        request = Request(scope)
        ctx = contextvars.copy_context()
        ctx.run(set_current_request, request)
        loop = asyncio.get_running_loop()

        try:
            result = await loop.run_in_executor(None, ctx.run, self.dispatch)
        except Exception:
            logger.exception("Unhandled error dispatching %s %s", request.method, request.path)
            body: dict[str, Any] = {"detail": "Internal Server Error"}
            if self.config.debug:
                body["traceback"] = traceback.format_exc()
            await JSONResponse(body, status_code=500).send(send)
            return

        await self._build_response(result, request).send(send)

    def _build_response(self, result: DispatchResult, request: Request) -> Response:
        if result.outcome is Outcome.ABORTED:
            status = request.response_status or result.status_code
            response = Response(b"", status_code=status)
        else:
            response = to_response(result.body, result.status_code)
        for key, value in request.response_headers:
            response.headers[key.lower()] = value
        return response

    # ------------------------------------------------------------------
    # Granian convenience
    # ------------------------------------------------------------------

    def run(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        *,
        dev: bool = False,
        reload: bool | None = None,
        workers: int = 1,
        log_level: str = "info",
        **granian_kwargs: Any,
    ) -> None:
        """Serve the app with Granian.

        Parameters
        ----------
        dev:
            When ``True``, enables reload, debug logging, and access logs.
        reload:
            Auto-reload on code changes.  ``None`` follows *dev*.
        workers:
            Number of worker processes.
        """
        from mrouter._server import serve

        target = _resolve_target(self)
        serve(
            target,
            host=host,
            port=port,
            dev=dev,
            reload=reload,
            workers=workers,
            log_level=log_level,
            app=self,
            granian_kwargs=granian_kwargs or None,
        )


# ------------------------------------------------------------------
# Module-level helpers
# ------------------------------------------------------------------


def _resolve_target(app: MRouter) -> str:
    """Derive a ``"module:var"`` string for the given app instance.

    Searches ``__main__`` for a module-level variable whose value *is* the
    app.  Falls back to the script's ``__file__`` stem when running as
    ``python main.py`` so Granian workers can import it.
    """
    main = sys.modules.get("__main__")
    if main is None:
        raise RuntimeError("Cannot auto-detect Granian target: __main__ module not found.")

    var_name = next((name for name, val in vars(main).items() if val is app), None)
    if var_name is None:
        raise RuntimeError(
            "Cannot auto-detect Granian target: no module-level variable in "
            "__main__ references this MRouter instance. "
            "Use the CLI with an explicit target instead, e.g. mrouter run myapp:app."
        )

    spec = getattr(main, "__spec__", None)
    module_name: str | None = spec.name if spec else None
    if not module_name:
        main_file = getattr(main, "__file__", None)
        module_name = Path(main_file).stem if main_file else None

    return f"{module_name}:{var_name}"


async def _handle_lifespan(receive: Receive, send: Send) -> None:
    """Acknowledge lifespan startup and shutdown; the router has no hooks to run."""
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return
