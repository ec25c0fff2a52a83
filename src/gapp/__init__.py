from gapp.app import Gapp, Runner, init_app, run, serve
from gapp.config import Config, ConfigModel, LoggingConfig, ServerConfig
from gapp.exceptions import ConfigurationError, GappError, ListenerError, NoListenersError
from gapp.listener import Listener, ListenerSpec, UvicornListener
from gapp.log import configure_logging
from gapp.middleware import (
    LoggingMiddleware,
    RecoveryMiddleware,
    gzip_middleware,
    internal_error_response,
    log_request_end,
    log_request_start,
    logging_middleware,
    recovery_middleware,
)
from gapp.router import HandlerMapping, Router

__all__ = [
    "Config",
    "ConfigModel",
    "ConfigurationError",
    "Gapp",
    "GappError",
    "HandlerMapping",
    "Listener",
    "ListenerError",
    "ListenerSpec",
    "LoggingConfig",
    "LoggingMiddleware",
    "NoListenersError",
    "RecoveryMiddleware",
    "Router",
    "Runner",
    "ServerConfig",
    "UvicornListener",
    "configure_logging",
    "gzip_middleware",
    "init_app",
    "internal_error_response",
    "log_request_end",
    "log_request_start",
    "logging_middleware",
    "recovery_middleware",
    "run",
    "serve",
]
__version__ = "0.1.0"
