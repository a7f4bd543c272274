"""mrouter exception hierarchy.

Shared across the registry, the dispatcher and the ASGI adapter so every
module raises and catches the same types.
"""


class RouterError(Exception):
    """Base for all mrouter-specific errors."""


class ConfigurationError(RouterError):
    """Raised when routes, handlers or templates are misconfigured.

    Never swallowed by ``dispatch()``: a handler that cannot be resolved is a
    programming error and should fail loudly.
    """


class NamedRouteNotFound(RouterError, LookupError):  # noqa: N818
    """No route was registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No route named {name!r}")
