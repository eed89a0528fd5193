"""Transport layer: ASGI response sending and the uvicorn-backed server."""
