"""Response objects sent by the ASGI adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, TypeAdapter

if TYPE_CHECKING:
    from mrouter._types import Send

_JSON = TypeAdapter(Any)


class Response:
    """A complete HTTP response with a bytes body."""

    media_type = "text/html; charset=utf-8"

    __slots__ = ("body", "headers", "status_code")

    def __init__(
        self,
        content: bytes | str = b"",
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.body = content.encode("utf-8") if isinstance(content, str) else content
        self.status_code = status_code
        self.headers: dict[str, str] = {"content-type": media_type or self.media_type}
        for key, value in (headers or {}).items():
            self.headers[key.lower()] = value

    def raw_headers(self) -> list[tuple[bytes, bytes]]:
        headers = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in self.headers.items()]
        headers.append((b"content-length", str(len(self.body)).encode("latin-1")))
        return headers

    async def send(self, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers(),
            }
        )
        await send({"type": "http.response.body", "body": self.body})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code})"


class PlainTextResponse(Response):
    media_type = "text/plain; charset=utf-8"


class JSONResponse(Response):
    """JSON body; pydantic models, dicts and lists are all accepted."""

    media_type = "application/json"

    def __init__(
        self,
        content: Any,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        if isinstance(content, BaseModel):
            payload = content.model_dump_json().encode("utf-8")
        else:
            payload = _JSON.dump_json(content)
        super().__init__(payload, status_code=status_code, headers=headers)


def to_response(body: Any, status_code: int = 200) -> Response:
    """Wrap a handler's return value in the matching response type."""
    if isinstance(body, Response):
        return body
    if isinstance(body, BaseModel | dict | list):
        return JSONResponse(body, status_code=status_code)
    if body is None:
        return Response(b"", status_code=status_code)
    if isinstance(body, bytes):
        return Response(body, status_code=status_code, media_type="application/octet-stream")
    return Response(str(body), status_code=status_code)
