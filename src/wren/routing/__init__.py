"""Routing — route builders, router registry and the compiled lookup trie.

Routes are registered during setup and compiled into an immutable
trie when the app freezes.
"""

from wren.routing.route import Route, RouteMatch, normalize_path
from wren.routing.router import Router
from wren.routing.tree import RouteTree

__all__ = ["Route", "RouteMatch", "RouteTree", "Router", "normalize_path"]
