"""Per-user file storage.

Usage:
    from convospace.storage import create_storage_service

    storage = create_storage_service()
    url = storage.upload(fileobj, "notes/todo.txt", user_id=1)
"""

import logging
from typing import Optional

from convospace.config import Settings, settings as default_settings
from convospace.exceptions import StorageDisabledError, StorageError
from convospace.storage.base import StorageBackend, StorageUsage, verify_signature

logger = logging.getLogger(__name__)


def create_storage_service(settings: Optional[Settings] = None) -> StorageBackend:
    """
    Build the storage backend selected by ``storage_provider``.

    Raises:
        StorageDisabledError: Storage is disabled
        StorageError: The provider is not supported
    """
    settings = settings or default_settings
    if not settings.storage_enabled:
        raise StorageDisabledError("Cloud storage is disabled in configuration")

    provider = settings.storage_provider.lower()
    if provider == "local":
        from convospace.storage.local import LocalStorageBackend

        return LocalStorageBackend(
            root=settings.storage_directory,
            base_url=settings.app_url,
            secret=settings.jwt_secret,
            max_file_size=settings.storage_max_file_size,
            quota_bytes=settings.storage_quota_bytes,
        )

    raise StorageError(f"Unsupported storage provider: {settings.storage_provider}")


__all__ = [
    "StorageBackend",
    "StorageUsage",
    "create_storage_service",
    "verify_signature",
]
