"""Serve an MRouter app with Granian."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mrouter.app import MRouter

logger = logging.getLogger("mrouter.server")


def serve(
    target: str,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    dev: bool = False,
    reload: bool | None = None,
    workers: int = 1,
    log_level: str = "info",
    app: MRouter | None = None,
    granian_kwargs: dict[str, Any] | None = None,
) -> None:
    """Start Granian for the ``"module:var"`` *target*.

    Each Granian worker imports *target* itself.  *app*, when given, is
    only used to report the route count in the banner.

    Parameters
    ----------
    dev:
        Dev-friendly defaults: reload, debug logs and access logs, unless
        explicitly overridden.
    reload:
        Enable auto-reload.  ``None`` means follow *dev*.
    """
    from granian import Granian

    log_access = False
    if dev:
        if reload is None:
            reload = True
        log_level = "debug"
        log_access = True
    reload = bool(reload)

    route_count = len(app.routes) if app is not None else None
    _print_banner(target, host=host, port=port, workers=workers, reload=reload, dev=dev, routes=route_count)
    logger.info("Serving %s on %s:%d with %d worker(s)", target, host, port, workers)

    server = Granian(
        target=target,
        address=host,
        port=port,
        interface="asgi",
        workers=workers,
        reload=reload,
        log_level=log_level,
        log_access=log_access,
        **(granian_kwargs or {}),
    )
    server.serve()


# ------------------------------------------------------------------
# Startup banner
# ------------------------------------------------------------------

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_BOLD = "\033[1m"
_RESET = "\033[0m"


def _print_banner(
    target: str,
    *,
    host: str,
    port: int,
    workers: int,
    reload: bool,
    dev: bool,
    routes: int | None,
) -> None:
    color = sys.stdout.isatty()

    def c(code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if color else text

    rows = [
        ("app", target),
        ("routes", "?" if routes is None else str(routes)),
        ("listen", f"http://{host}:{port}"),
        ("workers", str(workers)),
        ("reload", "on" if reload else "off"),
    ]
    mode = "dev" if dev else "production"
    lines = [f"{c(_BOLD + _CYAN, 'mrouter')} ({mode})", ""]
    lines += [f"  {c(_GREEN, label.ljust(8))} {value}" for label, value in rows]
    print("\n".join([*lines, ""]), flush=True)
