from dataclasses import dataclass
from typing import Any, Callable, Literal, overload

from starlette.routing import BaseRoute, Mount, Route

type HTTPMethod = Literal["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
type Handler = Callable[..., Any]


@dataclass(frozen=True)
class HandlerMapping:
    """Attaches a handler to a route pattern, e.g. ``HandlerMapping("/users/{id:int}", get_user)``."""
    route: str
    handler: Handler
    methods: set[str] | None = None
    name: str | None = None


def _check_methods(methods: Any) -> None:
    if not isinstance(methods, set) or not all(isinstance(method, str) for method in methods):
        raise ValueError("Methods must be a set of strings")


class Router:
    """Route table the application fills in from its ``configure_routes`` callback."""

    def __init__(self):
        self.routes: list[BaseRoute] = []

    def add_route(
        self,
        path: str,
        handler: Handler,
        methods: set[str] | None = None,
        name: str | None = None,
    ) -> None:
        if methods is None:
            methods = {"GET"}

        _check_methods(methods)
        self.routes.append(Route(path, handler, methods=methods, name=name))

    def handle(self, *mappings: HandlerMapping) -> None:
        for mapping in mappings:
            self.add_route(mapping.route, mapping.handler, mapping.methods, mapping.name)

    def mount(self, prefix: str, router: "Router", name: str | None = None) -> None:
        self.routes.append(Mount(prefix, routes=list(router.routes), name=name))

    @overload
    def route(self, path: str) -> Callable[[Handler], Handler]: ...

    @overload
    def route(self, path: str, methods: set[HTTPMethod]) -> Callable[[Handler], Handler]: ...

    def route[**P, R](self, path: str, *args, **kwargs) -> Callable[[Callable[P, R]], Callable[P, R]]:
        if len(args) > 1:
            raise ValueError("Too many arguments")

        if len(args) == 1 and "methods" in kwargs:
            raise ValueError("Methods cannot be specified as both an argument and a keyword argument")

        if len(args) == 1:
            methods = args[0]

        elif "methods" in kwargs:
            methods = kwargs["methods"]

        else:
            methods = {"GET"}

        _check_methods(methods)

        def decorator(func: Callable[P, R]) -> Callable[P, R]:
            self.add_route(path, func, methods)
            return func

        return decorator
