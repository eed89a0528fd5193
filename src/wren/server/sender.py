"""ASGI response sending — translates a wren Response into ASGI messages."""

import logging

from wren._internal.asgi import Send
from wren.http.response import Response

logger = logging.getLogger("wren.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(response: Response, send: Send) -> None:
    """Translate a wren Response into ASGI send() calls."""
    raw_headers: list[tuple[bytes, bytes]] = [
        (b"content-type", response.media_type.encode("latin-1")),
    ]
    raw_headers.extend(
        (name, value)
        for name, value in response.headers.raw()
        if name not in (b"content-type", b"content-length")
    )

    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    logger.debug("sending %d (%d bytes)", response.status, len(body))
    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )
