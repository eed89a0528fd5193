"""Mutable HTTP response with an idempotent terminal ``send()``.

Handlers and middleware set ``status``, ``body`` and ``headers`` while
the request is dispatched; the finalizer calls ``send()`` once.
"""

import json as json_module
from dataclasses import dataclass, field
from typing import Any

from wren._internal.asgi import Send
from wren.http.headers import MutableHeaders


@dataclass(slots=True)
class Response:
    """A response under construction.

    ``body`` may be ``str``, ``bytes``, ``None`` or any JSON-serializable
    value (encoded when sent). ``send()`` and ``end()`` are the same
    idempotent operation: the first call writes, later calls do nothing.
    """

    status: int = 200
    body: Any = None
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    content_type: str | None = None

    # Private: ASGI send callable; None when there is no transport
    _send: Send | None = field(default=None, repr=False, compare=False)
    _sent: bool = field(default=False, repr=False, compare=False)

    @property
    def sent(self) -> bool:
        return self._sent

    @property
    def body_bytes(self) -> bytes:
        """The body encoded for the wire."""
        body = self.body
        if body is None:
            return b""
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")
        return json_module.dumps(body, default=str).encode("utf-8")

    @property
    def media_type(self) -> str:
        """Explicit ``content_type``, else one implied by the body type."""
        if "content-type" in self.headers:
            return self.headers["content-type"]
        if self.content_type:
            return self.content_type
        if isinstance(self.body, bytes):
            return "application/octet-stream"
        if self.body is None or isinstance(self.body, str):
            return "text/plain; charset=utf-8"
        return "application/json"

    async def send(self) -> None:
        """Write the response once; repeated calls are no-ops."""
        if self._sent:
            return
        self._sent = True
        if self._send is not None:
            from wren.server.sender import send_response

            await send_response(self, self._send)

    async def end(self) -> None:
        """Alias of ``send()``."""
        await self.send()
