"""Error taxonomy for DevWatch."""


class ErrorKind:
    CREDENTIAL_INVALID = "credential_invalid"
    QUOTA_EXHAUSTED = "quota_exhausted"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    STORAGE = "storage"


_EXPLANATIONS = {
    ErrorKind.CREDENTIAL_INVALID: (
        "GitHub rejected the credential. Please check your access token."
    ),
    ErrorKind.QUOTA_EXHAUSTED: (
        "GitHub API rate limit exceeded. Please wait a few minutes before trying again."
    ),
    ErrorKind.NOT_FOUND: "Repository not found or access denied.",
    ErrorKind.TRANSPORT: (
        "Unable to reach GitHub. Please check your connection and try again."
    ),
    ErrorKind.STORAGE: "Unable to read or write local data.",
}


def describe_error(kind: str) -> str:
    """Return a human-readable explanation for an error kind."""
    return _EXPLANATIONS.get(kind, "An unexpected error occurred.")


class DevwatchError(Exception):
    """Base exception for all DevWatch errors."""

    kind = ErrorKind.TRANSPORT


class StorageError(DevwatchError):
    """Raised when persisted state cannot be read or written."""

    kind = ErrorKind.STORAGE


class FetchError(DevwatchError):
    """Raised when fetching a repository's activity fails."""

    def __init__(
        self, message: str, repository: str | None = None, status: int | None = None
    ) -> None:
        self.message = message
        self.repository = repository
        self.status = status
        super().__init__(message)


class CredentialInvalidError(FetchError):
    """Upstream authentication was rejected (HTTP 401)."""

    kind = ErrorKind.CREDENTIAL_INVALID


class QuotaExhaustedError(FetchError):
    """Upstream rate limit is exhausted (HTTP 403 with no remaining quota)."""

    kind = ErrorKind.QUOTA_EXHAUSTED


class NotFoundError(FetchError):
    """Repository is missing or inaccessible (HTTP 404)."""

    kind = ErrorKind.NOT_FOUND


class TransportError(FetchError):
    """Any other network or HTTP failure."""

    kind = ErrorKind.TRANSPORT
