"""Routes files, request routing and reverse routing."""

from __future__ import annotations

import csv
import logging
import posixpath
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import parse_qsl, urlencode

from .appmodules import Module, module_by_name
from .http import Request
from .params import parse_params

log = logging.getLogger(__name__)

MODULE_PREFIX = "module:"
OVERRIDE_VERBS = ("POST", "PUT", "PATCH", "DELETE")

# Groups: 1 method, 4 path, 5 action, 6 fixed arguments.
_ROUTE_PATTERN = re.compile(
    r"^(GET|POST|PUT|DELETE|PATCH|OPTIONS|HEAD|WS|\*)"
    r"[(]?([^)]*)(\))?[ \t]+"
    r"(.*/[^ \t]*)[ \t]+([^ \t(]+)"
    r"\(?([^)]*)\)?[ \t]*$",
    re.IGNORECASE,
)


class RouteError(Exception):
    """A routes file could not be loaded or its routing table could not be built."""

    def __init__(
        self,
        title: str,
        description: str,
        path: str = "",
        line: int = 0,
        source_lines: Iterable[str] = (),
    ) -> None:
        super().__init__(f"{title}: {description}")
        self.title = title
        self.description = description
        self.path = path
        self.line = line
        self.source_lines = list(source_lines)


class MethodNotAllowed(Exception):
    """A form asked to override the request method with a verb that is not allowed."""

    status = 405
    title = "Method not allowed"

    def __init__(self, method: str) -> None:
        self.method = method
        self.description = (
            f"Method {method} is not allowed (valid: {', '.join(OVERRIDE_VERBS)})"
        )
        super().__init__(self.description)


@dataclass
class Route:
    """One line of a routes file, prepared for matching."""

    method: str
    path: str
    action: str
    controller_name: str = ""
    method_name: str = ""
    fixed_params: list[str] = field(default_factory=list)
    tree_path: str = ""
    routes_path: str = ""
    line: int = 0


@dataclass
class RouteMatch:
    """The outcome of routing a request."""

    action: str = ""
    controller_name: str = ""
    method_name: str = ""
    fixed_params: list[str] = field(default_factory=list)
    params: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class ActionDefinition:
    """A URL and method that reach an action, found by reverse routing."""

    url: str
    method: str
    action: str
    star: bool = False
    host: str = ""
    args: dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.url


def tree_path(method: str, path: str) -> str:
    """Return the key under which a route is stored: "/METHOD/path"."""
    if method == "*":
        method = ":METHOD"
    return "/" + method + path


def _parse_fixed_args(fixed_args: str) -> list[str]:
    try:
        return next(csv.reader([fixed_args], skipinitialspace=True), [])
    except csv.Error as exc:
        log.error("Invalid fixed parameters (%s): for string '%s'", exc, fixed_args)
        return []


def make_route(
    method: str, path: str, action: str, fixed_args: str, routes_path: str, line: int
) -> Route:
    """Build a Route, splitting "Controller.Method" and the CSV fixed arguments."""
    upper = method.upper()
    route = Route(
        method=upper,
        path=path,
        action=action,
        fixed_params=_parse_fixed_args(fixed_args),
        tree_path=tree_path(upper, path),
        routes_path=routes_path,
        line=line,
    )
    if not path.startswith("/"):
        log.error("Absolute URL required.")
        return route
    parts = action.split(".")
    if len(parts) == 2:
        route.controller_name, route.method_name = parts
    return route


def parse_route_line(line: str) -> tuple[str, str, str, str] | None:
    """Split a route line into (method, path, action, fixed args), or None."""
    match = _ROUTE_PATTERN.match(line)
    if match is None:
        return None
    return match.group(1), match.group(4), match.group(5), match.group(6)


def _route_error(exc: Exception, routes_path: str, content: str, n: int) -> RouteError:
    if isinstance(exc, RouteError):
        return exc
    if not content and routes_path:
        try:
            content = Path(routes_path).read_text(encoding="utf-8")
        except OSError as read_error:
            log.error("Failed to read route file %s: %s", routes_path, read_error)
    return RouteError(
        title="Route validation error",
        description=str(exc),
        path=routes_path,
        line=n + 1,
        source_lines=content.split("\n"),
    )


def _module_routes(
    module_name: str, joined_path: str, modules: list[Module], app_root: str
) -> list[Route]:
    module = module_by_name(modules, module_name)
    if module is None:
        log.info("Skipping routes for inactive module %s", module_name)
        return []
    routes_path = posixpath.join(module.path, "conf", "routes")
    return parse_routes_file(routes_path, joined_path, modules, app_root)


def parse_routes(
    routes_path: str,
    joined_path: str,
    content: str,
    modules: list[Module],
    app_root: str,
) -> list[Route]:
    """Read the routes in content, including those of referenced modules."""
    routes: list[Route] = []
    for n, raw in enumerate(content.split("\n")):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith(MODULE_PREFIX):
            try:
                routes.extend(
                    _module_routes(line[len(MODULE_PREFIX):], joined_path, modules, app_root)
                )
            except RouteError as exc:
                raise _route_error(exc, routes_path, content, n) from exc
            continue

        parsed = parse_route_line(line)
        if parsed is None:
            continue
        method, path, action, fixed_args = parsed

        # Avoid a double slash between the joined prefix and the route path.
        if joined_path.endswith("/") and path.startswith("/"):
            joined_path = joined_path[:-1]
        path = app_root + joined_path + path

        # "* /jobs module:jobs" mounts the module's routes under /jobs.
        if method == "*" and action.startswith(MODULE_PREFIX):
            try:
                routes.extend(
                    _module_routes(action[len(MODULE_PREFIX):], path, modules, app_root)
                )
            except RouteError as exc:
                raise _route_error(exc, routes_path, content, n) from exc
            continue

        routes.append(make_route(method, path, action, fixed_args, routes_path, n))
    return routes


def parse_routes_file(
    routes_path: str, joined_path: str, modules: list[Module], app_root: str
) -> list[Route]:
    """Read the routes file at routes_path."""
    try:
        content = Path(routes_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise RouteError("Failed to load routes file", str(exc)) from exc
    return parse_routes(routes_path, joined_path, content, modules, app_root)


def override_method(request: Request) -> str:
    """Apply a form's "_method" override to a POST request and return the method.

    Raises MethodNotAllowed when the requested verb is not one of OVERRIDE_VERBS.
    """
    if request.method.upper() != "POST":
        return request.method
    form: dict[str, list[str]] = {}
    if request.content_type == "application/x-www-form-urlencoded":
        for key, value in parse_qsl(
            request.body.decode("utf-8", "replace"), keep_blank_values=True
        ):
            form.setdefault(key, []).append(value)
    elif request.content_type == "multipart/form-data":
        form = parse_params(request).form
    values = form.get("_method")
    verb = values[0].upper() if values else ""
    if verb:
        if verb not in OVERRIDE_VERBS:
            raise MethodNotAllowed(verb)
        request.method = verb
    return request.method


@dataclass
class _Leaf:
    value: object
    wildcards: list[str]


class _Node:
    __slots__ = ("static", "wildcard", "leaf", "star")

    def __init__(self) -> None:
        self.static: dict[str, _Node] = {}
        self.wildcard: _Node | None = None
        self.leaf: _Leaf | None = None
        self.star: _Leaf | None = None


def _split_path(path: str) -> list[str]:
    elements = path.split("/")
    if elements and elements[0] == "":
        elements = elements[1:]
    if elements and elements[-1] == "":
        elements = elements[:-1]
    return elements


class PathTree:
    """A tree of "/"-separated paths with ":name" and trailing "*name" wildcards.

    Trailing slashes are ignored. Static elements win over wildcards, and
    wildcards over a star.
    """

    def __init__(self) -> None:
        self._root = _Node()

    def add(self, path: str, value: object) -> None:
        """Store value under path; raises ValueError for bad or duplicate paths."""
        if not path.startswith("/"):
            raise ValueError(f"path must begin with /: {path}")
        elements = _split_path(path)
        node = self._root
        wildcards: list[str] = []
        for position, element in enumerate(elements):
            if element.startswith("*"):
                if position != len(elements) - 1:
                    raise ValueError(f"star parameter must be the last element: {path}")
                if node.star is not None:
                    raise ValueError(f"duplicate path: {path}")
                node.star = _Leaf(value, [*wildcards, element[1:]])
                return
            if element.startswith(":"):
                if node.wildcard is None:
                    node.wildcard = _Node()
                node = node.wildcard
                wildcards.append(element[1:])
            else:
                node = node.static.setdefault(element, _Node())
        if node.leaf is not None:
            raise ValueError(f"duplicate path: {path}")
        node.leaf = _Leaf(value, wildcards)

    def find(self, path: str) -> tuple[object, dict[str, str]] | None:
        """Return (value, wildcard values) for path, or None if nothing matches."""
        if not path.startswith("/"):
            return None
        found = self._find(self._root, path[1:], [])
        if found is None:
            return None
        leaf, expansions = found
        return leaf.value, dict(zip(leaf.wildcards, expansions))

    def _find(
        self, node: _Node, elements: str, expansions: list[str]
    ) -> tuple[_Leaf, list[str]] | None:
        if not elements:
            return (node.leaf, expansions) if node.leaf is not None else None
        head, _, tail = elements.partition("/")
        following = node.static.get(head)
        if following is not None:
            found = self._find(following, tail, expansions)
            if found is not None:
                return found
        if node.wildcard is not None:
            found = self._find(node.wildcard, tail, [*expansions, head])
            if found is not None:
                return found
        if node.star is not None:
            return node.star, [*expansions, elements]
        return None


def _header(headers: Mapping[str, str] | None, name: str) -> str:
    wanted = name.lower()
    for key, value in (headers or {}).items():
        if key.lower() == wanted:
            return value
    return ""


class Router:
    """The routing table built from a routes file."""

    def __init__(
        self, path: str = "", modules: list[Module] | None = None, app_root: str = ""
    ) -> None:
        self.path = path
        self.modules = modules if modules is not None else []
        self.app_root = app_root
        self.routes: list[Route] = []
        self.tree = PathTree()

    def route(
        self, method: str, path: str, headers: Mapping[str, str] | None = None
    ) -> RouteMatch | None:
        """Find the route for a request, or None when nothing matches."""
        override = _header(headers, "X-HTTP-Method-Override")
        if override and method == "POST":
            method = override

        found = self.tree.find(tree_path(method, path))
        if found is None:
            return None
        route, expansions = found
        assert isinstance(route, Route)
        params = {name: [value] for name, value in expansions.items()}

        if route.action == "404":
            return RouteMatch(action="404")

        controller_name, method_name = route.controller_name, route.method_name
        if controller_name.startswith(":"):
            controller_name = params[controller_name[1:]][0]
        if method_name.startswith(":"):
            method_name = params[method_name[1:]][0]

        return RouteMatch(
            controller_name=controller_name,
            method_name=method_name,
            fixed_params=list(route.fixed_params),
            params=params,
        )

    def refresh(self) -> None:
        """Re-read the routes file and rebuild the routing table."""
        self.routes = parse_routes_file(self.path, "", self.modules, self.app_root)
        self.update_tree()

    def update_tree(self) -> None:
        """Rebuild the lookup tree from the routes; GET routes also answer HEAD."""
        tree = PathTree()
        for route in self.routes:
            try:
                tree.add(route.tree_path, route)
                if route.method == "GET":
                    tree.add(tree_path("HEAD", route.path), route)
            except ValueError as exc:
                raise _route_error(exc, route.routes_path, "", route.line) from exc
        self.tree = tree

    def reverse(
        self, action: str, args: Mapping[str, str] | None = None
    ) -> ActionDefinition | None:
        """Return the URL for "Controller.Method" with args, or None if unrouted."""
        parts = action.split(".")
        if len(parts) != 2:
            raise ValueError(f"reverse router got invalid action {action}")
        controller_name, method_name = parts
        arg_values = dict(args or {})

        for route in self.routes:
            if not route.controller_name or not route.method_name:
                continue
            controller_wildcard = route.controller_name.startswith(":")
            method_wildcard = route.method_name.startswith(":")
            if (not controller_wildcard and route.controller_name != controller_name) or (
                not method_wildcard and route.method_name != method_name
            ):
                continue
            if controller_wildcard:
                arg_values[route.controller_name[1:]] = controller_name
            if method_wildcard:
                arg_values[route.method_name[1:]] = method_name

            elements = []
            for element in route.path.split("/"):
                if element.startswith(":"):
                    name = element[1:]
                    if name not in arg_values:
                        log.error("reverse route missing route arg %s", name)
                    element = arg_values.pop(name, "<nil>")
                elements.append(element)

            url = "/".join(elements)
            if arg_values:
                url += "?" + urlencode(sorted(arg_values.items()))

            star = route.method == "*"
            return ActionDefinition(
                url=url,
                method="GET" if star else route.method,
                action=action,
                star=star,
                args=arg_values,
            )

        log.error("Failed to find reverse route: %s %s", action, arg_values)
        return None