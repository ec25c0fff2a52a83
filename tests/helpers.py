import asyncio
import socket

from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from gapp.app import Gapp
from gapp.config import Config, ServerConfig
from gapp.listener import ListenerSpec
from gapp.router import Router


async def hello(request: Request) -> PlainTextResponse:
    return PlainTextResponse("Hello")


class RecordingService(Gapp):
    """Service that records the callbacks it receives."""

    def __init__(
        self,
        server_config: ServerConfig | None = None,
        middleware: list[Middleware] | None = None,
        config: Config | None = None,
    ):
        self.server_config = server_config or ServerConfig(port=8080)
        self.middleware = middleware or []
        self.config = config or Config({"name": "recording"})
        self.calls: list = []

    def load_config(self) -> Config:
        self.calls.append("load_config")
        return self.config

    def configure_logging(self, config: Config) -> None:
        self.calls.append("configure_logging")

    def init_resources(self, config: Config) -> None:
        self.calls.append("init_resources")

    def configure_routes(self, router: Router, config: Config) -> None:
        self.calls.append("configure_routes")
        router.add_route("/hello", hello)

    def set_middleware(self, config: Config) -> list[Middleware]:
        self.calls.append("set_middleware")
        return self.middleware

    def get_server_conf(self, config: Config) -> ServerConfig:
        self.calls.append("get_server_conf")
        return self.server_config

    def handle_start(self, host: str, port: int, tls_port: int) -> None:
        self.calls.append(("handle_start", host, port, tls_port))

    def handle_stopped(self) -> None:
        self.calls.append("handle_stopped")


class FakeListener:
    """Listener that serves until it is stopped, without opening sockets."""

    def __init__(self, spec: ListenerSpec, app):
        self.spec = spec
        self.app = app
        self.started = asyncio.Event()
        self.finished = False
        self.stop_calls: list[bool] = []
        self._stop = asyncio.Event()

    async def serve(self) -> None:
        self.started.set()
        await self._stop.wait()
        self.finished = True

    def stop(self, force: bool = False) -> None:
        self.stop_calls.append(force)
        self._stop.set()


class FailingListener(FakeListener):
    async def serve(self) -> None:
        self.started.set()
        raise OSError(f"address {self.spec.address} already in use")


class ImmediateListener(FakeListener):
    async def serve(self) -> None:
        self.started.set()
        self.finished = True


class ListenerRecorder:
    """Listener factory keeping every listener it creates."""

    def __init__(self, listener_class=FakeListener, failing_schemes: set[str] | None = None):
        self.listener_class = listener_class
        self.failing_schemes = failing_schemes or set()
        self.listeners: list[FakeListener] = []

    def __call__(self, spec: ListenerSpec, app) -> FakeListener:
        listener_class = FailingListener if spec.scheme in self.failing_schemes else self.listener_class
        listener = listener_class(spec, app)
        self.listeners.append(listener)
        return listener

    async def wait_started(self, count: int, timeout: float = 2) -> None:
        async def wait():
            while len(self.listeners) < count:
                await asyncio.sleep(0.01)

            await asyncio.gather(*(listener.started.wait() for listener in self.listeners))

        await asyncio.wait_for(wait(), timeout)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
