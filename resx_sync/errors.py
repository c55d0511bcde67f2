"""Exception hierarchy for the synchronization engine."""
from typing import Iterable, List, Optional


class SyncError(Exception):
    """Base class for every error raised by the synchronization engine."""


class LocaleValidationError(SyncError):
    """Raised when requested locales are not configured in the remote project."""

    def __init__(self, invalid_locales: Iterable[str], available_locales: Iterable[str]):
        self.invalid_locales: List[str] = sorted(invalid_locales)
        self.available_locales: List[str] = sorted(available_locales)
        super().__init__(f"Invalid locale(s): {', '.join(self.invalid_locales)}")


class RemoteError(SyncError):
    """A transport or backend failure on a single remote operation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(RemoteError):
    """The backend rejected a request because of rate limiting."""


class JobTimeoutError(SyncError):
    """A remote job or an export did not finish within its time budget."""


class KeyCompletenessError(SyncError):
    """A candidate translation lacks keys present in its neutral source."""

    def __init__(self, file_name: str, missing_keys: Iterable[str]):
        self.file_name = file_name
        self.missing_keys: List[str] = sorted(missing_keys)
        super().__init__(
            f"'{file_name}' is missing {len(self.missing_keys)} key(s): {', '.join(self.missing_keys)}"
        )


class WriteError(SyncError):
    """A destination file could not be written."""


class ResxParseError(SyncError):
    """A resource file could not be parsed into a key set."""
