"""Method + path URL router with groups, named middleware and named routes."""

__version__ = "0.1.0"

from mrouter.app import DispatchResult, MRouter, Outcome
from mrouter.config import RouterConfig
from mrouter.errors import ConfigurationError, NamedRouteNotFound, RouterError
from mrouter.helpers import redirect
from mrouter.request import Request, current_request, request_context
from mrouter.response import JSONResponse, PlainTextResponse, Response
from mrouter.routing import Route, RouteRef, Router

__all__ = [
    "ConfigurationError",
    "DispatchResult",
    "JSONResponse",
    "MRouter",
    "NamedRouteNotFound",
    "Outcome",
    "PlainTextResponse",
    "Request",
    "Response",
    "Route",
    "RouteRef",
    "Router",
    "RouterConfig",
    "RouterError",
    "current_request",
    "redirect",
    "request_context",
]
