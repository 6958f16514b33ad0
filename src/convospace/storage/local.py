"""Storage backend on the local filesystem."""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from convospace.exceptions import (
    FileTooLargeError,
    StorageNotFoundError,
    StorageQuotaExceededError,
)
from convospace.storage.base import StorageBackend, StorageUsage, normalize_storage_path

logger = logging.getLogger(__name__)


def _stream_size(fileobj: BinaryIO) -> int:
    fileobj.seek(0, os.SEEK_END)
    size = fileobj.tell()
    fileobj.seek(0)
    return size


class LocalStorageBackend(StorageBackend):
    """Stores each user's files under ``<root>/<user_id>/``."""

    def __init__(self, root: Path, **kwargs):
        super().__init__(**kwargs)
        self.root = Path(root)

    def _staging_dir(self) -> Path:
        # Outside every user directory so partial writes never count as files
        return self.root / ".staging"

    def _user_dir(self, user_id: int) -> Path:
        return self.root / str(user_id)

    def _resolve(self, path: str, user_id: int) -> tuple[str, Path]:
        relative = normalize_storage_path(path)
        return relative, self._user_dir(user_id) / relative

    def _iter_files(self, user_id: int):
        user_dir = self._user_dir(user_id)
        if not user_dir.exists():
            return
        for file_path in user_dir.rglob("*"):
            if file_path.is_file():
                yield file_path

    def upload(self, fileobj: BinaryIO, path: str, user_id: int) -> str:
        relative, target = self._resolve(path, user_id)

        size = _stream_size(fileobj)
        if size > self.max_file_size:
            raise FileTooLargeError(size, self.max_file_size)

        usage = self.get_usage(user_id)
        replaced = target.stat().st_size if target.is_file() else 0
        used = usage.used - replaced
        if used + size > self.quota_bytes:
            raise StorageQuotaExceededError(used, self.quota_bytes, size)

        target.parent.mkdir(parents=True, exist_ok=True)
        staging = self._staging_dir()
        staging.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix="upload-", dir=staging)
        try:
            with os.fdopen(fd, "wb") as tmp:
                shutil.copyfileobj(fileobj, tmp)
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(f"Stored {relative} ({size} bytes) for user {user_id}")
        return self.download_url(relative)

    def download(self, path: str, user_id: int) -> bytes:
        relative, target = self._resolve(path, user_id)
        if not target.is_file():
            raise StorageNotFoundError(relative)
        return target.read_bytes()

    def delete(self, path: str, user_id: int) -> None:
        relative, target = self._resolve(path, user_id)
        if not target.is_file():
            raise StorageNotFoundError(relative)
        target.unlink()
        logger.info(f"Deleted {relative} for user {user_id}")

    def list(self, prefix: str, user_id: int) -> list[str]:
        user_dir = self._user_dir(user_id)
        files = (p.relative_to(user_dir).as_posix() for p in self._iter_files(user_id))
        return sorted(f for f in files if f.startswith(prefix or ""))

    def get_usage(self, user_id: int) -> StorageUsage:
        sizes = [p.stat().st_size for p in self._iter_files(user_id)]
        return StorageUsage(used=sum(sizes), limit=self.quota_bytes, file_count=len(sizes))
