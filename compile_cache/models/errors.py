"""Error taxonomy for the cache check and container build."""


class CompileCacheError(Exception):
    """Base class for every error raised by compile_cache."""


class ConfigError(CompileCacheError):
    """Missing or invalid input directory, script path, or setting."""


class FormatError(CompileCacheError):
    """Malformed listing content."""

    def __init__(self, message: str, line_number: int | None = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class ArchiveError(CompileCacheError):
    """Existing output archive cannot be used as a cache reference."""

    def __init__(self, message: str, archive_path=None):
        self.archive_path = archive_path
        super().__init__(message)


class ArchiveOpenError(ArchiveError):
    """Output archive exists but cannot be opened as a zip file."""


class ManifestNotFoundError(ArchiveError):
    """Output archive has no listing entry."""


class ContainerError(CompileCacheError):
    """A container lifecycle call failed."""


class ImagePullError(ContainerError):
    pass


class ContainerCreateError(ContainerError):
    pass


class ContainerStartError(ContainerError):
    pass


class ContainerWaitError(ContainerError):
    pass


class LogRetrievalError(ContainerError):
    pass


class BuildFailedError(ContainerError):
    """Build script exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int, logs: bytes = b""):
        self.exit_code = exit_code
        self.logs = logs
        super().__init__(message)
