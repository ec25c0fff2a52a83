import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

import uvicorn
from starlette.types import ASGIApp, Receive, Scope, Send

from gapp.config import ServerConfig
from gapp.exceptions import ListenerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListenerSpec:
    """Everything a listener needs to accept connections for one scheme."""
    scheme: str
    host: str
    port: int
    read_timeout: float = 0
    write_timeout: float = 0
    graceful_timeout: float = 0
    cert_file: str = ""
    key_file: str = ""
    access_log: bool = False

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_tls(self) -> bool:
        return self.scheme == "https"

    @classmethod
    def for_server(cls, server_config: ServerConfig, access_log: bool = False) -> list["ListenerSpec"]:
        specs = []
        for scheme in server_config.schemes:
            tls = scheme == "https"
            specs.append(
                cls(
                    scheme=scheme,
                    host=server_config.host,
                    port=server_config.tls_port if tls else server_config.port,
                    read_timeout=server_config.read_timeout,
                    write_timeout=server_config.write_timeout,
                    graceful_timeout=server_config.graceful_timeout,
                    cert_file=server_config.tls_cert_file if tls else "",
                    key_file=server_config.tls_private_key_file if tls else "",
                    access_log=access_log,
                )
            )

        return specs


class Listener(Protocol):
    spec: ListenerSpec

    async def serve(self) -> None:
        """Accept connections until stopped, then drain in-flight requests."""
        ...

    def stop(self, force: bool = False) -> None:
        """Stop accepting connections. With force, in-flight requests are not waited for."""
        ...


type ListenerFactory = Callable[[ListenerSpec, ASGIApp], Listener]


class WriteDeadline:
    """Bounds the time the wrapped app has to produce its complete response."""

    def __init__(self, app: ASGIApp, timeout: float):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        await asyncio.wait_for(self.app(scope, receive, send), self.timeout)


class _Server(uvicorn.Server):
    # Stop signals are handled by the Runner for every listener at once
    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


class UvicornListener:
    def __init__(self, spec: ListenerSpec, app: ASGIApp):
        self.spec = spec
        self._stop_requested = False
        if spec.write_timeout > 0:
            app = WriteDeadline(app, spec.write_timeout)

        options = {}
        if spec.read_timeout > 0:
            options["timeout_keep_alive"] = spec.read_timeout

        if spec.is_tls:
            options["ssl_certfile"] = spec.cert_file
            options["ssl_keyfile"] = spec.key_file

        self.config = uvicorn.Config(
            app,
            host=spec.host,
            port=spec.port,
            lifespan="off",
            log_config=None,
            access_log=spec.access_log,
            timeout_graceful_shutdown=spec.graceful_timeout or None,
            **options,
        )
        self.server = _Server(self.config)

    async def serve(self) -> None:
        if self._stop_requested:
            return

        logger.info(f"Starting {self.spec.scheme} listener on {self.spec.address}")
        try:
            await self.server.serve()
        except SystemExit as exc:
            # uvicorn exits the startup when it cannot bind
            raise ListenerError(self.spec.scheme, self.spec.address) from exc

        logger.info(f"Stopped {self.spec.scheme} listener on {self.spec.address}")

    def stop(self, force: bool = False) -> None:
        self._stop_requested = True
        self.server.should_exit = True
        if force:
            self.server.force_exit = True
