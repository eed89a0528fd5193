"""Wren exception hierarchy.

Shared across the context store, router, dispatcher and app so every
module raises and catches the same types.
"""

from dataclasses import dataclass, fields
from typing import Any


class WrenError(Exception):
    """Base for all wren-specific errors."""


class ConfigurationError(WrenError):
    """Raised when a registration is invalid.

    Always raised synchronously during setup (``bind``, ``route().get()``,
    ``use()``, compilation), never while a request is being dispatched.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(WrenError):
    """An error that maps directly to an HTTP status code.

    ``expose`` controls whether the default catcher reveals ``message``
    to the client. Server errors (5xx) are hidden unless exposed
    explicitly.
    """

    status: int = 500
    message: str = ""
    code: str = "HTTP_ERROR"
    expose: bool | None = None
    headers: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not 100 <= self.status <= 599:
            msg = f"Invalid HTTP status code: {self.status!r}"
            raise ConfigurationError(msg)
        if self.expose is None:
            object.__setattr__(self, "expose", self.status < 500)
        object.__setattr__(self, "args", (self.message,) if self.message else (self.status,))

    def __reduce__(self) -> tuple[Any, ...]:
        state = {f.name: getattr(self, f.name) for f in fields(self)}
        return (_rebuild_http_error, (type(self), state))

    def __str__(self) -> str:
        if self.message:
            return f"{self.status}: {self.message}"
        return str(self.status)


def _rebuild_http_error(cls: type[HTTPError], state: dict[str, Any]) -> HTTPError:
    # Subclasses narrow __init__, so restore through the dataclass one.
    error = cls.__new__(cls)
    HTTPError.__init__(error, **state)
    return error


class NotFound(HTTPError):  # noqa: N818 (conventional name in web frameworks)
    """404 — no route matched the request method and path."""

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(status=404, message=message, code="NOT_FOUND", expose=True)


class HandlerError(WrenError):
    """Wraps a non-exception value passed to ``next()`` as an error.

    The original value is kept on ``value``.
    """

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"non-error thrown: {value!r}")

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), (self.value,))


def coerce_error(value: Any) -> BaseException:
    """Return *value* as an exception instance, wrapping anything else."""
    if isinstance(value, BaseException):
        return value
    return HandlerError(value)
