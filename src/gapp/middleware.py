"""Cross-cutting middleware for gapp services.

Each factory returns a starlette ``Middleware`` unit for the app's ``set_middleware`` callback::

    def set_middleware(self, config):
        return [
            recovery_middleware(internal_error_response),
            logging_middleware(log_request_start, log_request_end),
            gzip_middleware(),
        ]

Units wrap each other in the order given, the first one being the outermost. The compression unit has to be
last so every other unit sees the uncompressed response.
"""
import inspect
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("gapp.access")

type RecoverFunc = Callable[[Request, Exception], Response | None | Awaitable[Response | None]]
type PreLogFunc = Callable[[str, str, datetime], None]
type PostLogFunc = Callable[[str, str, int, timedelta], None]


class RecoveryMiddleware:
    """Turns an exception raised while handling a request into a response for that request only.

    The recover func receives the request and the exception and may return the response to send. Returning
    ``None`` sends an empty 500. When the response had already started the body is closed instead. Without a
    recover func exceptions pass through untouched.
    """

    def __init__(self, app: ASGIApp, recover_func: RecoverFunc | None = None):
        self.app = app
        self.recover_func = recover_func

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.recover_func is None:
            await self.app(scope, receive, send)
            return

        response_started = False
        response_complete = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started, response_complete
            match message["type"]:
                case "http.response.start":
                    response_started = True
                case "http.response.body" if not message.get("more_body", False):
                    response_complete = True

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            logger.error(
                f"Recovered from {type(exc).__name__} while handling {scope['method']} {scope['path']}",
                exc_info=exc,
            )
            response = self.recover_func(Request(scope, receive), exc)
            if inspect.isawaitable(response):
                response = await response

            if response_started:
                if not response_complete:
                    await send({"type": "http.response.body", "body": b"", "more_body": False})

                return

            if response is None:
                response = Response(status_code=500)

            await response(scope, receive, send)


class LoggingMiddleware:
    """Calls the pre log func before the request is handled and the post log func once it is done.

    The status passed to the post log func is the one the response was started with. It is zero when no
    response was started below this middleware, for instance when the request raised.
    """

    def __init__(
        self,
        app: ASGIApp,
        pre_log_func: PreLogFunc | None = None,
        post_log_func: PostLogFunc | None = None,
    ):
        self.app = app
        self.pre_log_func = pre_log_func
        self.post_log_func = post_log_func

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method, path = scope["method"], scope["path"]
        start = datetime.now(timezone.utc)
        started_at = time.perf_counter()
        if self.pre_log_func:
            self.pre_log_func(method, path, start)

        status = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            if self.post_log_func:
                duration = timedelta(seconds=time.perf_counter() - started_at)
                self.post_log_func(method, path, status, duration)


def recovery_middleware(recover_func: RecoverFunc | None = None) -> Middleware:
    """Creates a middleware that handles exceptions raised during requests with the supplied func."""
    return Middleware(RecoveryMiddleware, recover_func=recover_func)


def logging_middleware(
    pre_log_func: PreLogFunc | None = None,
    post_log_func: PostLogFunc | None = None,
) -> Middleware:
    """Creates a middleware to log before and after requests. Either func may be None.

    The post log func is not guaranteed a valid status, zero is passed when the status is not known.
    """
    return Middleware(LoggingMiddleware, pre_log_func=pre_log_func, post_log_func=post_log_func)


def gzip_middleware(minimum_size: int = 500, compresslevel: int = 9) -> Middleware:
    """Creates a middleware to gzip responses. This should be the last entry of the middleware list."""
    return Middleware(GZipMiddleware, minimum_size=minimum_size, compresslevel=compresslevel)


def internal_error_response(request: Request, exc: Exception) -> Response:
    return PlainTextResponse("Internal Server Error", status_code=500)


def log_request_start(method: str, path: str, start: datetime) -> None:
    access_logger.debug(f"{method} {path} started at {start.isoformat()}")


def log_request_end(method: str, path: str, status: int, duration: timedelta) -> None:
    access_logger.info(f"{method} {path} {status or '-'} {duration.total_seconds() * 1000:.2f}ms")
