"""Shared type aliases used across wren modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Middleware: ``(ctx, next)``, sync or async
Middleware: TypeAlias = Callable[..., Any]

# Terminal route handler: ``(ctx) -> body | Exception | None``
Handler: TypeAlias = Callable[..., Any]

# Finalizer: ``(ctx)``, runs once per request
Finalizer: TypeAlias = Callable[..., Any]

# Bound context property factory: ``(ctx) -> value``
Factory: TypeAlias = Callable[..., Any]

# Continuation handed to middleware: ``next(err=None)``
Next: TypeAlias = Callable[..., None]
