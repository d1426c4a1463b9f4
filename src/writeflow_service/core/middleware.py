"""ASGI middleware guarding JSON request bodies."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send


# Endpoints that read a JSON object body. Action endpoints such as
# /bids/{id}/approve or /tasks/{id}/start carry no body and are not listed.
JSON_BODY_ROUTES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("POST", re.compile(r"^/tasks$")),
    ("PATCH", re.compile(r"^/tasks/[^/]+$")),
    ("POST", re.compile(r"^/bids$")),
    ("POST", re.compile(r"^/writers$")),
    ("POST", re.compile(r"^/transactions$")),
)


class _BodyTooLargeError(Exception):
    pass


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": {}},
    )


class RequestValidationMiddleware:
    """
    Rejects JSON endpoint requests before routing.

    415 UNSUPPORTED_MEDIA_TYPE when Content-Type is not application/json,
    413 PAYLOAD_TOO_LARGE once the streamed body passes max_body_size.
    Accepted bodies are buffered and replayed to the app in one message.
    """

    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    @staticmethod
    def takes_json_body(method: str, path: str) -> bool:
        return any(
            route_method == method and pattern.match(path) is not None
            for route_method, pattern in JSON_BODY_ROUTES
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.takes_json_body(
            cast("str", scope.get("method", "GET")),
            cast("str", scope.get("path", "")),
        ):
            await self.app(scope, receive, send)
            return

        if not self._content_type(scope).startswith("application/json"):
            response = _error_response(
                415, "UNSUPPORTED_MEDIA_TYPE", "Content-Type must be application/json"
            )
            await response(scope, receive, send)
            return

        try:
            body = await self._read_body(receive)
        except _BodyTooLargeError:
            response = _error_response(
                413, "PAYLOAD_TOO_LARGE", "Request body exceeds maximum allowed size"
            )
            await response(scope, receive, send)
            return

        await self.app(scope, self._replay(body), send)

    @staticmethod
    def _content_type(scope: Scope) -> str:
        for name, value in cast("list[tuple[bytes, bytes]]", scope.get("headers", [])):
            if name.lower() == b"content-type":
                return value.decode("latin-1").lower()
        return ""

    async def _read_body(self, receive: Receive) -> bytes:
        body = bytearray()
        more_body = True
        while more_body:
            message = cast("dict[str, Any]", await receive())
            body.extend(message.get("body", b""))
            if len(body) > self.max_body_size:
                raise _BodyTooLargeError
            more_body = bool(message.get("more_body", False))
        return bytes(body)

    @staticmethod
    def _replay(body: bytes) -> Receive:
        delivered = False

        async def receive() -> Message:
            nonlocal delivered
            if delivered:
                return {"type": "http.disconnect"}
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}

        return receive
