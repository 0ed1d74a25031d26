"""Exception types for pod_exporter."""


class ExporterError(Exception):
    """Base class for errors raised by pod_exporter."""


class ConfigurationError(ExporterError):
    """Invalid startup configuration. The exporter refuses to run."""


class MissingSource(ExporterError):
    """An expected kernel file, controller or interface does not exist."""

    def __init__(self, path) -> None:
        super().__init__(f"source not found: {path}")
        self.path = path


class MalformedData(ExporterError):
    """A kernel file had an unexpected shape as a whole."""

    def __init__(self, path, detail: str) -> None:
        super().__init__(f"malformed {path}: {detail}")
        self.path = path
        self.detail = detail
