import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

import yaml

from gapp.exceptions import ConfigurationError

ENVIRONMENT_VARIABLE = "GAPP_ENVIRONMENT"
DEFAULT_ENVIRONMENT = "prod"


class ConfigModel:
    """Base for typed configuration sections.

    Subclasses name the top level key they are read from::

        @dataclass
        class DatabaseConfig(ConfigModel, model_key="database"):
            host: str = "localhost"
            port: int = 5432
    """
    __model_key__: ClassVar[str]

    def __init_subclass__(cls, **kwargs):
        cls.__model_key__ = kwargs.pop("model_key", cls.__name__)
        super().__init_subclass__(**kwargs)


class Config:
    def __init__(self, config: dict[str, Any] | None = None):
        self.config = config or {}

    def get[T](self, key: str, model: type[T] | None = None) -> T | Any:
        if model:
            return model(**_section(key, self.config[key]))

        return self.config[key]

    def get_model[M: ConfigModel](self, model: type[M]) -> M:
        """Builds a config model from its section, using the model defaults when the section is absent."""
        section = self.config.get(model.__model_key__)
        if section is None:
            return model()

        return model(**_section(model.__model_key__, section))

    def __contains__(self, key: str) -> bool:
        return key in self.config

    @classmethod
    def load_config(cls, name: str, directory: str | Path = ".") -> "Config":
        match directory:
            case ".":
                path = Path()

            case str():
                path = Path(directory)

            case Path():
                path = directory

            case _:
                raise ValueError(f"Invalid directory: {directory}")

        file_path = path / name
        with file_path.open("r") as f:
            data = yaml.safe_load(f)

        match data:
            case None:
                return Config({})

            case dict():
                return Config(data)

            case _:
                raise ConfigurationError(
                    f"Configuration file '{file_path}' must contain a mapping, found {type(data).__name__}.",
                    name,
                    path,
                )

    @classmethod
    def for_environment(
        cls,
        working_directory: str | Path | None = None,
        environment: str | None = None,
    ) -> "Config":
        """Load ``gapp.<environment>.yaml`` from the working directory.

        Args:
            working_directory: Directory holding the config files, defaults to the current working directory.
            environment: Environment name (e.g. 'dev', 'prod'). If not provided, uses the GAPP_ENVIRONMENT env var,
                defaulting to 'prod'.

        Raises:
            ConfigurationError: When the config file cannot be found or loaded
        """
        config_path = get_config_path(working_directory, environment)
        try:
            return cls.load_config(config_path.name, config_path.parent)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Failed to load configuration from '{config_path}': {e}",
                config_path.name,
                config_path.parent,
            ) from e


def _section(key: str, value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config section '{key}' must be a mapping, found {type(value).__name__}.")

    return value


def get_environment(environment: str | None = None) -> str:
    if environment:
        return environment

    return os.environ.get(ENVIRONMENT_VARIABLE, DEFAULT_ENVIRONMENT)


def get_config_path(working_directory: str | Path | None, environment: str | None) -> Path:
    match working_directory:
        case str():
            working_directory = Path(working_directory)
        case Path():
            pass
        case None:
            working_directory = Path.cwd()
        case _:
            raise ValueError(f"Invalid working directory: {working_directory}")

    environment = get_environment(environment)
    config_filename = f"gapp.{environment}.yaml"
    if not working_directory.exists():
        raise ConfigurationError(
            f"Configuration file '{config_filename}' not found, the working directory {working_directory} does not "
            f"exist or is not a valid path. Confirm that the working directory is set correctly and that it exists.",
            config_filename,
            working_directory,
        )

    config_path = working_directory / config_filename
    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file '{config_path}' not found, confirm that the environment '{environment}' is set "
            f"correctly and that the file exists.",
            config_filename,
            working_directory,
        )

    return config_path


@dataclass(frozen=True)
class ServerConfig(ConfigModel, model_key="server"):
    """Values needed to start the listeners.

    A port of zero or less disables its scheme. Timeouts are seconds, zero meaning no limit.

    ``read_timeout`` is how long an idle keep-alive connection is held open between requests. It does not bound
    the time taken to read a request. ``write_timeout`` bounds the time a request has to produce its response.
    """
    host: str = "0.0.0.0"
    port: int = 0
    tls_port: int = 0
    tls_cert_file: str = ""
    tls_private_key_file: str = ""
    read_timeout: float = 0
    write_timeout: float = 0
    graceful_timeout: float = 0

    @classmethod
    def from_config(cls, config: Config) -> "ServerConfig":
        return config.get_model(cls)

    @property
    def schemes(self) -> list[str]:
        schemes = []
        if self.port > 0:
            schemes.append("http")

        if self.tls_port > 0:
            schemes.append("https")

        return schemes


@dataclass
class LoggingConfig(ConfigModel, model_key="logging"):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    access_log: bool = False
