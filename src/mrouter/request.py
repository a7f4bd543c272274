"""The hosting environment's current request.

The dispatcher only ever needs a method and a path.  When
``dispatch()`` is called without them it reads the request bound to the
current context, which the ASGI adapter (or any other host) sets with
:func:`request_context` or :func:`set_current_request`.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from mrouter._types import Scope


class Request:
    """Thin wrapper around an ASGI *scope*.

    ``path_params`` is filled by the dispatcher once a route matches, so
    middleware and handlers can read every captured value by name.
    ``response_status`` and ``response_headers`` are a write-back slot for
    middleware: an aborting middleware can record a redirect or an error
    status there for the host to send.
    """

    __slots__ = ("_scope", "path_params", "response_headers", "response_status")

    def __init__(self, scope: Scope) -> None:
        self._scope = scope
        self.path_params: dict[str, str] = {}
        self.response_status: int | None = None
        self.response_headers: list[tuple[str, str]] = []

    @classmethod
    def build(
        cls,
        method: str,
        target: str,
        *,
        headers: dict[str, str] | None = None,
        scheme: str = "http",
    ) -> Request:
        """Build a request without a server, e.g. for scripts and tests."""
        path, _, query = target.partition("?")
        scope: dict[str, Any] = {
            "type": "http",
            "method": method.upper(),
            "path": path or "/",
            "query_string": query.encode("latin-1"),
            "scheme": scheme,
            "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()],
        }
        return cls(scope)

    @property
    def method(self) -> str:
        return self._scope["method"]

    @property
    def path(self) -> str:
        return self._scope["path"]

    @property
    def query_string(self) -> bytes:
        return self._scope.get("query_string", b"")

    @property
    def headers(self) -> dict[str, str]:
        """Headers as a lowercase-keyed dict (last value wins for dupes)."""
        return {k.decode("latin-1"): v.decode("latin-1") for k, v in self._scope.get("headers", [])}

    @property
    def scheme(self) -> str:
        return self._scope.get("scheme", "http")

    @property
    def host(self) -> str:
        host = self.headers.get("host")
        if host:
            return host
        server = self._scope.get("server")
        if server:
            return f"{server[0]}:{server[1]}"
        return "localhost"

    @property
    def target(self) -> str:
        """Path plus query string, as it appeared in the request line."""
        qs = self.query_string.decode("latin-1")
        return f"{self.path}?{qs}" if qs else self.path

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}{self.target}"

    def __repr__(self) -> str:
        return f"Request({self.method!r}, {self.target!r})"


# ------------------------------------------------------------------
# Current-request context
# ------------------------------------------------------------------

_current: ContextVar[Request | None] = ContextVar("mrouter_request", default=None)


def current_request() -> Request:
    """Return the request bound to this context.

    Raises :class:`RuntimeError` outside of a request.
    """
    request = _current.get()
    if request is None:
        msg = "No current request: pass method and path to dispatch() or bind a request first"
        raise RuntimeError(msg)
    return request


def get_current_request() -> Request | None:
    return _current.get()


def set_current_request(request: Request | None) -> Token[Request | None]:
    return _current.set(request)


@contextmanager
def request_context(request: Request) -> Iterator[Request]:
    """Bind *request* as current for the duration of the block."""
    token = _current.set(request)
    try:
        yield request
    finally:
        _current.reset(token)
