import logging

from gapp.config import Config, LoggingConfig


def configure_logging(config: Config) -> LoggingConfig:
    """Configures the root logger from the config's ``logging`` section.

    Request logs written by :func:`gapp.middleware.log_request_end` go to the ``gapp.access`` logger, which is
    kept at WARNING unless ``access_log`` is enabled.
    """
    logging_config = config.get_model(LoggingConfig)
    logging.basicConfig(level=logging_config.level.upper(), format=logging_config.format, force=True)
    logging.getLogger("gapp.access").setLevel(logging.INFO if logging_config.access_log else logging.WARNING)
    return logging_config
