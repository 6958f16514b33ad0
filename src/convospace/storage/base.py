"""Storage backend interface and shared helpers."""

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import BinaryIO, Optional
from urllib.parse import urlencode

from convospace.exceptions import InvalidStoragePathError


@dataclass
class StorageUsage:
    """Bytes and files stored by one user."""

    used: int
    limit: int
    file_count: int

    @property
    def percentage(self) -> float:
        if self.limit <= 0:
            return 0.0
        return round(self.used / self.limit * 100, 2)

    def to_dict(self) -> dict:
        return {
            "used": self.used,
            "limit": self.limit,
            "fileCount": self.file_count,
            "percentage": self.percentage,
        }


def normalize_storage_path(path: str) -> str:
    """
    Validate a user-supplied relative path.

    Returns:
        The path in normalized POSIX form

    Raises:
        InvalidStoragePathError: Empty, absolute or containing ``..``
    """
    if not path or not path.strip():
        raise InvalidStoragePathError(path)

    candidate = path.strip().replace("\\", "/")
    pure = PurePosixPath(candidate)
    if pure.is_absolute() or ".." in pure.parts:
        raise InvalidStoragePathError(path)

    parts = [part for part in pure.parts if part not in ("", ".")]
    if not parts:
        raise InvalidStoragePathError(path)
    return "/".join(parts)


def sign_path(secret: str, user_id: int | str, path: str, expires: int) -> str:
    """HMAC-SHA256 signature binding a user, a path and an expiry."""
    message = f"{user_id}:{path}:{expires}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(
    secret: str,
    user_id: int | str,
    path: str,
    expires: int,
    signature: str,
    now: Optional[float] = None,
) -> bool:
    """True when the signature matches and has not expired."""
    if expires < int(now if now is not None else time.time()):
        return False
    expected = sign_path(secret, user_id, path, expires)
    return hmac.compare_digest(expected, signature)


class StorageBackend(ABC):
    """Per-user file storage."""

    def __init__(self, base_url: str, secret: str, max_file_size: int, quota_bytes: int):
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.max_file_size = max_file_size
        self.quota_bytes = quota_bytes

    @abstractmethod
    def upload(self, fileobj: BinaryIO, path: str, user_id: int) -> str:
        """
        Store a file.

        Returns:
            URL the file can be downloaded from

        Raises:
            FileTooLargeError: File exceeds the per-file limit
            StorageQuotaExceededError: Upload would exceed the user's quota
        """
        ...

    @abstractmethod
    def download(self, path: str, user_id: int) -> bytes:
        """
        Raises:
            StorageNotFoundError: No such file
        """
        ...

    @abstractmethod
    def delete(self, path: str, user_id: int) -> None:
        ...

    @abstractmethod
    def list(self, prefix: str, user_id: int) -> list[str]:
        """Relative paths of the user's files starting with ``prefix``."""
        ...

    @abstractmethod
    def get_usage(self, user_id: int) -> StorageUsage:
        ...

    def download_url(self, path: str) -> str:
        return f"{self.base_url}/api/storage/download?{urlencode({'path': path})}"

    def get_signed_url(self, path: str, user_id: int, expires_in: int = 3600) -> str:
        """Time-limited URL for a file that needs no bearer token."""
        path = normalize_storage_path(path)
        expires = int(time.time()) + expires_in
        query = urlencode(
            {
                "path": path,
                "user": user_id,
                "expires": expires,
                "signature": sign_path(self.secret, user_id, path, expires),
            }
        )
        return f"{self.base_url}/api/storage/shared?{query}"
