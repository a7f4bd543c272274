"""URL helpers bound to the current request."""

from __future__ import annotations

import os
from typing import Literal

from mrouter.request import current_request


def redirect(location: str, status: int = 302) -> Literal[False]:
    """Record a redirect on the current request and return ``False``.

    Meant to be returned from middleware so the redirect also aborts the
    dispatch::

        def auth():
            if not logged_in():
                return redirect("/login")
    """
    request = current_request()
    request.response_status = status
    request.response_headers.append(("location", location))
    return False


def assets(path: str, root: str = "./public/assets") -> str:
    """Public URL of a static asset under *root*."""
    return f"{root.rstrip('/')}/{path.lstrip('/')}"


def path(path: str, relative: bool = True, document_root: str | None = None) -> str:
    """``/path``, or the same path under *document_root* when not relative."""
    path = "/" + path.lstrip("/")
    if relative:
        return path
    root = (document_root or os.getcwd()).rstrip("/")
    return root + path


def segments(reverse: bool = False) -> list[str]:
    """Non-empty segments of the current request path."""
    parts = [part for part in current_request().path.split("/") if part]
    if reverse:
        parts.reverse()
    return parts


def segment(level: int, from_end: bool = False) -> str | None:
    """The 1-based *level*-th segment, counted from the end if *from_end*."""
    parts = segments(reverse=from_end)
    if level < 1 or level > len(parts):
        return None
    return parts[level - 1]


def root() -> str:
    return current_request().path or "/"


def full_url() -> str:
    return current_request().url
