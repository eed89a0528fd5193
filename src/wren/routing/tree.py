"""Method+path lookup trie.

Composed chains are inserted at compile time; the tree is read-only
once the app freezes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import unquote

from wren._internal.types import Middleware
from wren.errors import ConfigurationError
from wren.routing.route import PathSegment, Route, RouteMatch, normalize_path


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"         -> [PathSegment("users")]
        "/users/:id"     -> [PathSegment("users"), PathSegment(":id", "param", "id")]
        "/files/*"       -> [PathSegment("files"), PathSegment("*", "wildcard", "*")]
        "/files/*rest"   -> [PathSegment("files"), PathSegment("*rest", "wildcard", "rest")]
    """
    segments: list[PathSegment] = []
    parts = [p for p in normalize_path(path).split("/") if p]
    for index, part in enumerate(parts):
        if part.startswith(":"):
            name = part[1:]
            if not name.isidentifier():
                msg = f"Invalid parameter {part!r} in route {path!r}."
                raise ConfigurationError(msg)
            segments.append(PathSegment(value=part, kind="param", param_name=name))
        elif part.startswith("*"):
            if index != len(parts) - 1:
                msg = f"Wildcard {part!r} must be the last segment of route {path!r}."
                raise ConfigurationError(msg)
            segments.append(PathSegment(value=part, kind="wildcard", param_name=part[1:] or "*"))
        elif part.startswith("{") and part.endswith("}"):
            msg = (
                f"Route {path!r} uses {{param}} syntax. "
                f"Use :param instead, e.g. /users/:id"
            )
            raise ConfigurationError(msg)
        else:
            segments.append(PathSegment(value=part))
    return segments


@dataclass(slots=True)
class _Entry:
    """A compiled chain stored at a trie node."""

    path: str
    chain: tuple[Middleware, ...]
    route: Route | None


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("children", "entries", "param_child", "wildcard")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Single parameter child (one parameter name per level)
        self.param_child: _ParamEdge | None = None
        # Wildcard, consumes the remaining path
        self.wildcard: _WildcardEdge | None = None
        # Entries at this node, keyed by HTTP method
        self.entries: dict[str, _Entry] = {}


@dataclass(slots=True)
class _ParamEdge:
    param_name: str
    node: _TrieNode


@dataclass(slots=True)
class _WildcardEdge:
    param_name: str
    entries: dict[str, _Entry] = field(default_factory=dict)


class RouteTree:
    """Trie-based method+path index.

    Usage::

        tree = RouteTree()
        tree.add("GET", "/users/:id", chain)
        tree.compile()
        match = tree.match("GET", "/users/42")
    """

    __slots__ = ("_compiled", "_root", "_size")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def add(
        self,
        method: str,
        path: str,
        chain: tuple[Middleware, ...],
        route: Route | None = None,
    ) -> None:
        """Insert a composed chain. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        method = method.upper()
        path = normalize_path(path)
        entry = _Entry(path=path, chain=chain, route=route)
        node = self._root

        for seg in parse_path(path):
            if seg.kind == "wildcard":
                if node.wildcard is None:
                    node.wildcard = _WildcardEdge(param_name=seg.param_name or "*")
                elif node.wildcard.param_name != seg.param_name:
                    msg = (
                        f"Conflicting wildcard names {node.wildcard.param_name!r} and "
                        f"{seg.param_name!r} in route {path!r}."
                    )
                    raise ConfigurationError(msg)
                self._insert(node.wildcard.entries, method, entry)
                return

            if seg.kind == "param":
                if node.param_child is None:
                    node.param_child = _ParamEdge(
                        param_name=seg.param_name or "",
                        node=_TrieNode(),
                    )
                elif node.param_child.param_name != seg.param_name:
                    msg = (
                        f"Conflicting parameter names :{node.param_child.param_name} and "
                        f":{seg.param_name} in route {path!r}."
                    )
                    raise ConfigurationError(msg)
                node = node.param_child.node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        self._insert(node.entries, method, entry)

    def _insert(self, entries: dict[str, _Entry], method: str, entry: _Entry) -> None:
        if method in entries:
            msg = f"Route {method} {entry.path} is already registered."
            raise ConfigurationError(msg)
        entries[method] = entry
        self._size += 1

    def compile(self) -> None:
        """Freeze the tree. No more chains can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch | None:
        """Look up *method* and *path*; ``None`` when nothing matches.

        *path* may carry a query string or fragment; both are ignored.
        It is split on literal slashes before each segment is
        percent-decoded, so ``%2F``, ``%3F`` and ``%23`` stay inside their
        segment.
        """
        method = method.upper()
        path = normalize_path(path)
        parts = [unquote(p) for p in path.split("/") if p]
        found = self._match_node(self._root, method, parts, 0, {})
        if found is None:
            return None
        entry, params = found
        return RouteMatch(
            method=method,
            path=entry.path,
            chain=entry.chain,
            params=params,
            route=entry.route,
        )

    def _match_node(
        self,
        node: _TrieNode,
        method: str,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> tuple[_Entry, dict[str, str]] | None:
        """Recursively match path parts against the trie."""
        if index == len(parts):
            entry = node.entries.get(method)
            if entry is not None:
                return entry, params
            # A trailing wildcard also matches an empty remainder
            if node.wildcard is not None:
                entry = node.wildcard.entries.get(method)
                if entry is not None:
                    return entry, {**params, node.wildcard.param_name: ""}
            return None

        part = parts[index]

        # 1. Static child (exact match)
        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, method, parts, index + 1, params)
            if result is not None:
                return result

        # 2. Parameter child
        if node.param_child is not None:
            edge = node.param_child
            result = self._match_node(
                edge.node, method, parts, index + 1, {**params, edge.param_name: part}
            )
            if result is not None:
                return result

        # 3. Wildcard
        if node.wildcard is not None:
            entry = node.wildcard.entries.get(method)
            if entry is not None:
                remaining = "/".join(parts[index:])
                return entry, {**params, node.wildcard.param_name: remaining}

        return None
