"""Hello World — the simplest wren app.

Demonstrates routers with a prefix, path parameters, shared and bound
context properties, a pre hook and a custom error handler.

Run:
    python app.py
"""

import itertools
import time

from wren import App, HTTPError, Router

app = App()

request_ids = itertools.count(1)
app.set("version", "0.1.0")
app.bind("request_id", lambda ctx: next(request_ids))


def timing(ctx, next):
    ctx.response.headers["X-Started"] = f"{time.monotonic():.6f}"
    next()


def index(ctx):
    return "Hello, World!"


def greet(ctx):
    return f"Hello, {ctx.params['name']}!"


def status(ctx):
    return {"status": "ok", "version": ctx.version, "request": ctx.request_id}


def teapot(ctx):
    return HTTPError(status=418, message="I'm a teapot", code="TEAPOT")


def render_error(ctx, next):
    error = ctx.error
    ctx.response.status = getattr(error, "status", 500)
    ctx.response.body = {
        "code": getattr(error, "code", "INTERNAL"),
        "message": error.message if getattr(error, "expose", False) else "Internal Server Error",
    }
    next()


app.pre(timing)
app.catch(render_error)
app.route("/").get(index)

api = Router("/api")
api.get("/greet/:name", greet)
api.get("/status", status)
api.get("/teapot", teapot)
app.use(api)


if __name__ == "__main__":
    app.run()
