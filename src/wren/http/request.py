"""Immutable HTTP request.

Frozen metadata with async body access. The dispatch engine reads only
``method`` and ``url``; everything else is for handlers.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from wren._internal.asgi import Receive, Scope
from wren.http.headers import Headers

# Characters left as-is when re-quoting a request path (RFC 3986 pchar plus "/").
_PATH_SAFE = "/%:@!$&'()*+,;=~"


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``url`` is the request target as received: the percent-encoded path
    plus optional query string. Body is read asynchronously via ``.body()``,
    ``.text()``, ``.json()``.
    """

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    http_version: str = "1.1"
    client: tuple[str, int] | None = None

    # Private: ASGI receive callable for body streaming
    _receive: Receive = field(default=_empty_receive, repr=False, compare=False)

    # Private: cache for the body (contents are mutable, the reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Build a request from an ASGI HTTP scope."""
        # The raw path keeps %23 and %3F inside segments; params are
        # decoded after matching. Some clients append the query to it.
        raw_path = scope.get("raw_path")
        if raw_path:
            raw = raw_path.decode("latin-1").partition("?")[0]
            path = quote(raw, safe=_PATH_SAFE, encoding="latin-1")
        else:
            path = quote(scope["path"], safe=_PATH_SAFE.replace("%", ""))
        query = scope.get("query_string", b"")
        url = f"{path}?{query.decode('latin-1')}" if query else path
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            url=url,
            headers=Headers(scope.get("headers", ())),
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
            _receive=receive,
        )

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
    ) -> Request:
        """Build a request outside any server, e.g. for ``App.handle()``."""

        async def receive() -> dict[str, Any]:
            return {"type": "http.request", "body": body, "more_body": False}

        return cls(
            method=method.upper(),
            url=url,
            headers=Headers.from_dict(headers or {}),
            _receive=receive,
        )

    # -- Computed properties --

    @property
    def path(self) -> str:
        """The URL without query string or fragment."""
        return self.url.split("?", 1)[0].split("#", 1)[0] or "/"

    @property
    def query_string(self) -> str:
        _, _, query = self.url.partition("?")
        return query.split("#", 1)[0]

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body; cached after the first call."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def text(self) -> str:
        raw = await self.body()
        return raw.decode("utf-8")

    async def json(self) -> Any:
        raw = await self.body()
        return json_module.loads(raw)
