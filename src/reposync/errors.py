"""
Exception hierarchy for reposync.

Fatal errors (`RemoteFetchError`, `LocalScanError`, `ConfigError`,
`SyncAbortedError`) abort a run before any repository is touched and are
turned into a distinct exit status by the CLI. `SyncTaskError` is raised by a
single pull or clone and is always captured by the executor into that
repository's outcome.

Usage:
    from reposync.errors import RemoteFetchError

    raise RemoteFetchError("authentication rejected", status_code=401)
"""


class ReposyncError(Exception):
    """
    Base class for all reposync errors.

    Attributes:
        message: Human-readable error message
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(ReposyncError):
    """A required option is missing or a configured value is invalid."""


class RemoteFetchError(ReposyncError):
    """
    The remote repository listing could not be retrieved completely.

    Raised when authentication is rejected, the endpoint is unreachable, or a
    page cannot be parsed into repository descriptors.

    Attributes:
        status_code: HTTP status of the failing response, if one was received
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class LocalScanError(ReposyncError):
    """The local root directory does not exist or cannot be listed."""


class SyncTaskError(ReposyncError):
    """
    A single pull or clone failed.

    Attributes:
        repo_name: Name of the repository the operation ran against
    """

    def __init__(self, message: str, repo_name: str | None = None):
        self.repo_name = repo_name
        super().__init__(message)


class SyncAbortedError(ReposyncError):
    """The run was stopped before any repository was touched."""
