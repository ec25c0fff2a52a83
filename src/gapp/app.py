"""Lifecycle contract for gapp services and the runner that drives it.

A service implements :class:`Gapp` and hands an instance to :func:`run`::

    class HelloService(Gapp):
        def load_config(self) -> Config:
            return Config.for_environment()

        def configure_logging(self, config: Config) -> None:
            configure_logging(config)

        def init_resources(self, config: Config) -> None:
            self.greeting = config.get("greeting")

        def configure_routes(self, router: Router, config: Config) -> None:
            router.add_route("/", self.hello)

        def set_middleware(self, config: Config) -> list[Middleware]:
            return [recovery_middleware(internal_error_response), gzip_middleware()]

        def get_server_conf(self, config: Config) -> ServerConfig:
            return ServerConfig.from_config(config)

        def handle_start(self, host: str, port: int, tls_port: int) -> None:
            logger.info(f"Listening on {host} ({port}, {tls_port})")

        def handle_stopped(self) -> None:
            logger.info("Stopped")

    run(HelloService())

Callbacks are invoked once each, in the order they are declared on :class:`Gapp`. Exceptions raised by them are
not caught.
"""
import asyncio
import contextlib
import logging
import signal
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware

from gapp.config import Config, LoggingConfig, ServerConfig
from gapp.exceptions import NoListenersError
from gapp.listener import Listener, ListenerFactory, ListenerSpec, UvicornListener
from gapp.router import Router

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Gapp(ABC):
    """The callbacks a service must implement."""

    @abstractmethod
    def load_config(self) -> Any:
        """Loads the service config. The returned value is passed to every callback that follows."""

    @abstractmethod
    def configure_logging(self, config: Any) -> None:
        """Sets up logging, for instance from environment specific config."""

    @abstractmethod
    def init_resources(self, config: Any) -> None:
        """Opens connections, starts background workers and the like."""

    @abstractmethod
    def configure_routes(self, router: Router, config: Any) -> None:
        """Registers the service's handlers."""

    @abstractmethod
    def set_middleware(self, config: Any) -> Sequence[Middleware]:
        """Returns the middleware to wrap the routes in, outermost first."""

    @abstractmethod
    def get_server_conf(self, config: Any) -> ServerConfig:
        """Returns the host, ports and timeouts to listen with."""

    @abstractmethod
    def handle_start(self, host: str, port: int, tls_port: int) -> None:
        """Called right before the listeners start."""

    @abstractmethod
    def handle_stopped(self) -> None:
        """Called once every listener has stopped. Teardown goes here."""


def init_app(app: Gapp) -> tuple[Any, Starlette]:
    config = app.load_config()
    app.configure_logging(config)
    app.init_resources(config)

    router = Router()
    app.configure_routes(router, config)

    middleware = list(app.set_middleware(config) or [])
    _check_middleware_order(middleware)

    asgi_app = Starlette(routes=router.routes, middleware=middleware)
    # Build the chain now so it is complete and unchanged before any request arrives
    asgi_app.middleware_stack = asgi_app.build_middleware_stack()
    return config, asgi_app


def _check_middleware_order(middleware: list[Middleware]) -> None:
    for unit in middleware[:-1]:
        if unit.cls is GZipMiddleware:
            logger.warning(
                "Compression middleware is not the last middleware, the middleware after it will see compressed "
                "responses"
            )


class Runner:
    """Runs a :class:`Gapp` from ``load_config`` through ``handle_stopped``.

    One listener is started per configured scheme and each is served in its own task. The listeners are
    independent, one failing or being stopped leaves the other running, and ``handle_stopped`` is called once
    all of them have finished. A stop requested before the listeners exist skips serving, ``handle_stopped`` is
    still called.

    While serving on the main thread the stop signals stop every listener, a second SIGINT stops them without
    waiting for in-flight requests. Pass ``stop_signals=()`` to leave signals alone and call :meth:`stop` instead.

    Args:
        app: The service to run.
        listener_factory: Creates a listener from a spec and the ASGI app to serve, uvicorn by default.
        stop_signals: Signals that stop the listeners.
    """

    def __init__(
        self,
        app: Gapp,
        listener_factory: ListenerFactory = UvicornListener,
        stop_signals: Iterable[int] = HANDLED_SIGNALS,
    ):
        self.app = app
        self.listener_factory = listener_factory
        self.stop_signals = tuple(stop_signals)
        self.listeners: list[Listener] = []
        self._served = False
        self._stopping = False

    async def serve(self) -> None:
        if self._served:
            raise RuntimeError("A Runner can only be served once")

        self._served = True

        with self._handle_signals():
            config, asgi_app = init_app(self.app)
            server_config = self.app.get_server_conf(config)
            self.app.handle_start(server_config.host, server_config.port, server_config.tls_port)

            if server_config.port <= 0 and server_config.tls_port <= 0:
                raise NoListenersError()

            access_log = isinstance(config, Config) and config.get_model(LoggingConfig).access_log
            self.listeners = [
                self.listener_factory(spec, asgi_app)
                for spec in ListenerSpec.for_server(server_config, access_log=access_log)
            ]
            if self._stopping:
                logger.info("Stop requested before the listeners started, not serving")
            else:
                tasks = [
                    asyncio.create_task(self._serve_listener(listener), name=f"gapp-{listener.spec.scheme}")
                    for listener in self.listeners
                ]
                await asyncio.gather(*tasks)

        self.app.handle_stopped()

    def stop(self, force: bool = False) -> None:
        self._stopping = True
        for listener in self.listeners:
            listener.stop(force=force)

    async def _serve_listener(self, listener: Listener) -> None:
        try:
            await listener.serve()
        except Exception:
            logger.exception(f"The {listener.spec.scheme} listener on {listener.spec.address} failed")

    @contextlib.contextmanager
    def _handle_signals(self):
        if not self.stop_signals or threading.current_thread() is not threading.main_thread():
            yield
            return

        loop = asyncio.get_running_loop()
        installed = []
        for sig in self.stop_signals:
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                break

            installed.append(sig)

        try:
            yield
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    def _handle_signal(self, sig: int) -> None:
        force = self._stopping and sig == signal.SIGINT
        if force:
            logger.warning(f"Received {signal.Signals(sig).name} again, stopping without waiting for requests")
        else:
            logger.info(f"Received {signal.Signals(sig).name}, stopping listeners")

        self.stop(force=force)


async def serve(
    app: Gapp,
    listener_factory: ListenerFactory = UvicornListener,
    stop_signals: Iterable[int] = HANDLED_SIGNALS,
) -> None:
    await Runner(app, listener_factory=listener_factory, stop_signals=stop_signals).serve()


def run(
    app: Gapp,
    listener_factory: ListenerFactory = UvicornListener,
    stop_signals: Iterable[int] = HANDLED_SIGNALS,
) -> None:
    """Runs the service, blocking until it has stopped."""
    asyncio.run(serve(app, listener_factory=listener_factory, stop_signals=stop_signals))
