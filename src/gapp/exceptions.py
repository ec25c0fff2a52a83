from pathlib import Path


class GappError(Exception):
    """Base exception for gapp."""


class ConfigurationError(GappError):
    """Raised when configuration cannot be loaded."""
    def __init__(self, message: str, config_filename: str = "", working_directory: Path | None = None):
        super().__init__(message)
        self.config_filename = config_filename
        self.working_directory = working_directory


class NoListenersError(GappError):
    """Raised when the server config enables neither HTTP nor HTTPS.

    This is the only startup condition the orchestrator aborts on. It is raised
    after the app's ``handle_start`` callback and before any listener exists.
    """
    def __init__(self, message: str = "No ports specified. Must accept at least one scheme (HTTP and/or HTTPS)."):
        super().__init__(message)


class ListenerError(GappError):
    """Raised by a listener that could not start serving."""
    def __init__(self, scheme: str, address: str, message: str | None = None):
        super().__init__(message or f"{scheme} listener on {address} failed to start")
        self.scheme = scheme
        self.address = address
