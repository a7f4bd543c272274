"""Named middleware: registration, per-route bindings and the chain runner.

A middleware is a zero-argument callable run before the route handler.
Returning exactly ``False`` aborts the dispatch; any other value,
including ``None``, lets the chain continue.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mrouter.handlers import parse_handler

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from mrouter.handlers import HandlerRef

logger = logging.getLogger("mrouter.middleware")


class MiddlewareRegistry:
    """Name -> handler table plus ``(method, uri)`` -> names bindings."""

    __slots__ = ("_bindings", "_handlers")

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerRef] = {}
        self._bindings: dict[tuple[str, str], tuple[str, ...]] = {}

    def register(self, name: str, handler: Any) -> None:
        """Register *handler* under *name*, replacing any previous one."""
        self._handlers[name] = parse_handler(handler, allow_template=False)
        logger.debug("Registered middleware %r", name)

    def get(self, name: str) -> HandlerRef | None:
        return self._handlers.get(name)

    def attach(self, method: str, uri: str, names: Iterable[str]) -> None:
        """Bind *names* to one route, replacing any earlier binding."""
        self._bindings[(method.upper(), uri)] = tuple(names)

    def bound(self, method: str, uri: str) -> tuple[str, ...]:
        return self._bindings.get((method.upper(), uri), ())

    def run_chain(
        self,
        method: str,
        uri: str,
        resolve: Callable[[HandlerRef], Callable[..., Any]],
    ) -> bool:
        """Run the middleware bound to ``(method, uri)`` in order.

        Returns ``False`` as soon as one middleware returns ``False``,
        otherwise ``True``.  Names with no registered handler are skipped.
        """
        for name in self.bound(method, uri):
            ref = self._handlers.get(name)
            if ref is None:
                logger.debug("Skipping unregistered middleware %r on %s %s", name, method, uri)
                continue
            if resolve(ref)() is False:
                logger.debug("Middleware %r aborted %s %s", name, method, uri)
                return False
        return True
