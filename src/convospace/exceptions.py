"""Custom exceptions for ConvoSpace."""

from typing import Optional


class ProviderError(Exception):
    """Base class for failures talking to an LLM provider."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class ProviderNotConfiguredError(ProviderError):
    """Raised when a provider has no API key or is unknown."""


class ProviderAuthError(ProviderError):
    """Raised when a provider rejects the API key."""


class RateLimitError(ProviderError):
    """Raised when a provider reports a rate limit."""


class QuotaExceededError(ProviderError):
    """Raised when a provider reports an exhausted quota or billing limit."""


class AllProvidersFailedError(ProviderError):
    """Raised when the primary provider and every fallback failed."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.original_error = original_error
        super().__init__(message, provider)


class StorageError(Exception):
    """Base class for file storage failures."""


class StorageDisabledError(StorageError):
    """Raised when storage is disabled in configuration."""


class StorageQuotaExceededError(StorageError):
    """Raised when an upload would push a user over their quota."""

    def __init__(self, used: int, limit: int, requested: int):
        self.used = used
        self.limit = limit
        self.requested = requested
        super().__init__(
            f"Storage quota exceeded: {used + requested} bytes requested, limit is {limit}"
        )


class FileTooLargeError(StorageError):
    """Raised when a single upload exceeds the maximum file size."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"File size {size} exceeds limit of {max_size} bytes")


class StorageNotFoundError(StorageError):
    """Raised when a stored file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File not found: {path}")


class InvalidStoragePathError(StorageError):
    """Raised for empty, absolute or parent-escaping storage paths."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid storage path: {path!r}")


class PatchError(Exception):
    """Raised when a diff cannot be applied to file content."""


class CodeSessionNotFoundError(Exception):
    """Raised when a code session id is unknown or already collected."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class ChatRequestError(Exception):
    """Raised when a chat request is malformed or names an unusable provider/model."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.details = details or {}
        super().__init__(message)
