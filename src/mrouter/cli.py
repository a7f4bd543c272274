"""mrouter command-line interface powered by Typer."""

import importlib
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Annotated

import typer

from mrouter.app import MRouter, Outcome
from mrouter.handlers import describe
from mrouter.request import Request, request_context

app = typer.Typer(name="mrouter", add_completion=False, no_args_is_help=True)

TargetArg = Annotated[str, typer.Argument(help="Python file or module:var target.")]


@app.callback()
def main(
    log_level: Annotated[str, typer.Option("--log-level", help="Logging level for mrouter loggers.")] = "warning",
) -> None:
    """Inspect, exercise and serve mrouter applications."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


# ------------------------------------------------------------------
# Target resolution
# ------------------------------------------------------------------


def _import_target(path: str) -> tuple[str, MRouter]:
    """Import a CLI *path* argument and return ``("module:var", app)``.

    Accepted forms:
    - ``module:var``   → imports ``module`` and reads ``var``
    - ``file.py``      → imports ``file``, scans for an MRouter instance
    """
    if ":" in path:
        module_name, _, var_name = path.partition(":")
        mod = _import_module(module_name)
        found = getattr(mod, var_name, None)
        if not isinstance(found, MRouter):
            typer.echo(f"Error: {path!r} is not an MRouter instance.", err=True)
            raise typer.Exit(1)
        return path, found

    file = Path(path)
    if not file.exists():
        typer.echo(f"Error: file {path!r} not found.", err=True)
        raise typer.Exit(1)

    # Ensure the file's directory is on sys.path so we can import it.
    parent = str(file.resolve().parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)

    mod = _import_module(file.stem)
    var_name = _find_router_var(mod)
    if var_name is None:
        typer.echo(
            f"Error: no MRouter instance found in {path!r}. Provide an explicit target, e.g. main:app",
            err=True,
        )
        raise typer.Exit(1)

    return f"{file.stem}:{var_name}", getattr(mod, var_name)


def _import_module(module_name: str) -> ModuleType:
    if "" not in sys.path and str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))
    try:
        return importlib.import_module(module_name)
    except Exception as exc:
        typer.echo(f"Error importing {module_name!r}: {exc}", err=True)
        raise typer.Exit(1) from exc


def _find_router_var(mod: object) -> str | None:
    """Scan a module for an ``MRouter`` instance.

    Checks ``app`` and ``router`` first, then falls back to any attribute.
    """
    for name in ("app", "router"):
        if isinstance(getattr(mod, name, None), MRouter):
            return name

    for name in dir(mod):
        if name.startswith("_"):
            continue
        if isinstance(getattr(mod, name, None), MRouter):
            return name

    return None


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


@app.command()
def routes(path: TargetArg = "main.py") -> None:
    """List registered routes in match-priority order."""
    _, router = _import_target(path)
    rows = [
        (route.method, route.uri, describe(route.handler), name or "", ",".join(mw))
        for route, name, mw in router.iter_route_table()
    ]
    if not rows:
        typer.echo("No routes registered.")
        return

    header = ("METHOD", "PATH", "HANDLER", "NAME", "MIDDLEWARE")
    widths = [max(len(row[i]) for row in [header, *rows]) for i in range(len(header))]
    for row in [header, *rows]:
        typer.echo("  ".join(cell.ljust(width) for cell, width in zip(row, widths, strict=True)).rstrip())


@app.command()
def call(
    method: Annotated[str, typer.Argument(help="HTTP method, e.g. GET.")],
    url: Annotated[str, typer.Argument(help="Request path, optionally with a query string.")],
    path: Annotated[str, typer.Option("--app", "-a", help="Python file or module:var target.")] = "main.py",
) -> None:
    """Dispatch one request and print the response body."""
    _, router = _import_target(path)
    with request_context(Request.build(method, url)) as request:
        result = router.dispatch(method, url)

    if result.body is not None:
        typer.echo(result.body)
    status = request.response_status or result.status_code
    typer.echo(f"[{result.outcome.value} {status}]", err=True)
    for key, value in request.response_headers:
        typer.echo(f"{key}: {value}", err=True)
    if result.outcome is Outcome.ABORTED:
        raise typer.Exit(2)
    if result.outcome is Outcome.NOT_FOUND:
        raise typer.Exit(1)


@app.command()
def dev(
    path: TargetArg = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    reload: Annotated[bool | None, typer.Option("--reload/--no-reload", help="Auto-reload on code changes.")] = None,
) -> None:
    """Start a development server with auto-reload and debug logging."""
    from mrouter._server import serve

    target, router = _import_target(path)
    serve(target, host=host, port=port, dev=True, reload=reload, app=router)


@app.command()
def run(
    path: TargetArg = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    workers: Annotated[int, typer.Option(help="Number of worker processes.")] = 1,
) -> None:
    """Start a production server."""
    from mrouter._server import serve

    target, router = _import_target(path)
    serve(target, host=host, port=port, workers=workers, app=router)
