from typing import get_args

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Mount, Route

from gapp.router import HandlerMapping, HTTPMethod, Router


async def get_user(request: Request) -> JSONResponse:
    return JSONResponse({"id": request.path_params["user_id"]})


async def create_user(request: Request) -> PlainTextResponse:
    return PlainTextResponse("created", status_code=201)


def sync_handler(request: Request) -> PlainTextResponse:
    return PlainTextResponse("sync")


def client_for(router: Router) -> AsyncClient:
    app = Starlette(routes=router.routes)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


class TestRouter:
    def test_http_methods_alias(self):
        assert {"GET", "POST", "PUT", "PATCH", "DELETE"} <= set(get_args(HTTPMethod.__value__))

    def test_add_route_defaults_to_get(self):
        router = Router()
        router.add_route("/users/{user_id:int}", get_user)

        route = router.routes[0]
        assert isinstance(route, Route)
        assert route.path == "/users/{user_id:int}"
        assert "GET" in route.methods

    def test_add_route_with_methods(self):
        router = Router()
        router.add_route("/users", create_user, methods={"POST"})

        assert router.routes[0].methods == {"POST"}

    def test_add_route_rejects_non_set_methods(self):
        with pytest.raises(ValueError, match="Methods must be a set of strings"):
            Router().add_route("/users", create_user, methods=["POST"])

    def test_route_decorator(self):
        router = Router()

        @router.route("/users", {"POST"})
        async def handler(request):
            return PlainTextResponse("")

        assert router.routes[0].endpoint is handler
        assert router.routes[0].methods == {"POST"}

    def test_route_decorator_keyword_methods(self):
        router = Router()

        @router.route("/users", methods={"PUT"})
        async def handler(request):
            return PlainTextResponse("")

        assert router.routes[0].methods == {"PUT"}

    def test_route_decorator_default_methods(self):
        router = Router()

        @router.route("/users")
        async def handler(request):
            return PlainTextResponse("")

        assert "GET" in router.routes[0].methods

    def test_route_decorator_argument_errors(self):
        router = Router()

        with pytest.raises(ValueError, match="Too many arguments"):
            router.route("/users", {"GET"}, {"POST"})

        with pytest.raises(ValueError, match="both an argument and a keyword argument"):
            router.route("/users", {"GET"}, methods={"POST"})

        with pytest.raises(ValueError, match="Methods must be a set of strings"):
            router.route("/users", "GET")

    def test_handle_mappings(self):
        router = Router()
        router.handle(
            HandlerMapping("/users/{user_id:int}", get_user, name="user"),
            HandlerMapping("/users", create_user, methods={"POST"}),
        )

        assert [route.path for route in router.routes] == ["/users/{user_id:int}", "/users"]
        assert router.routes[0].name == "user"
        assert router.routes[1].methods == {"POST"}

    def test_mount(self):
        api = Router()
        api.add_route("/users/{user_id:int}", get_user)

        router = Router()
        router.mount("/api", api)

        assert isinstance(router.routes[0], Mount)
        assert router.routes[0].path == "/api"

    @pytest.mark.asyncio
    async def test_requests_reach_handlers(self):
        api = Router()
        api.handle(
            HandlerMapping("/users/{user_id:int}", get_user),
            HandlerMapping("/users", create_user, methods={"POST"}),
        )
        router = Router()
        router.add_route("/sync", sync_handler)
        router.mount("/api", api)

        async with client_for(router) as client:
            user = await client.get("/api/users/7")
            created = await client.post("/api/users")
            sync = await client.get("/sync")
            wrong_method = await client.get("/api/users")
            missing = await client.get("/nowhere")

        assert user.json() == {"id": 7}
        assert created.status_code == 201
        assert sync.text == "sync"
        assert wrong_method.status_code == 405
        assert missing.status_code == 404
