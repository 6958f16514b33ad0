"""
File storage API routes.

Per-user upload, download, listing, deletion, usage and signed URLs. Every
route except the signed download requires a bearer token.
"""

import logging
import mimetypes
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from convospace.api.auth import AuthContext, require_user
from convospace.api.dependencies import get_storage
from convospace.exceptions import (
    FileTooLargeError,
    InvalidStoragePathError,
    StorageError,
    StorageNotFoundError,
    StorageQuotaExceededError,
)
from convospace.storage import StorageBackend, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(error: StorageError) -> HTTPException:
    """Map storage failures to HTTP errors."""
    if isinstance(error, InvalidStoragePathError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, StorageNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, FileTooLargeError):
        return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(error))
    if isinstance(error, StorageQuotaExceededError):
        return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(error))
    logger.error(f"Storage operation failed: {error}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def _require_path(path: Optional[str]) -> str:
    if not path:
        raise HTTPException(status_code=400, detail="Path is required")
    return path


def _file_response(content: bytes, path: str) -> Response:
    filename = path.rsplit("/", 1)[-1]
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/upload")
def upload_file(
    file: Optional[UploadFile] = File(None),
    path: Optional[str] = Form(None),
    auth: AuthContext = Depends(require_user),
    storage: StorageBackend = Depends(get_storage),
) -> dict:
    """Upload a file to the caller's storage (multipart ``file`` and ``path``)."""
    if file is None or not path:
        raise HTTPException(status_code=400, detail="File and path are required")

    try:
        url = storage.upload(file.file, path, auth.user_id)
    except StorageError as e:
        raise _http_error(e)

    return {"success": True, "data": {"url": url, "path": path, "size": file.size}}


@router.get("/download")
def download_file(
    path: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_user),
    storage: StorageBackend = Depends(get_storage),
) -> Response:
    path = _require_path(path)
    try:
        content = storage.download(path, auth.user_id)
    except StorageError as e:
        raise _http_error(e)
    return _file_response(content, path)


@router.get("/shared")
def download_shared_file(
    path: str = Query(...),
    user: int = Query(...),
    expires: int = Query(...),
    signature: str = Query(...),
    storage: StorageBackend = Depends(get_storage),
) -> Response:
    """Download through a signed URL; no bearer token needed."""
    if not verify_signature(storage.secret, user, path, expires, signature):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired signature")
    try:
        content = storage.download(path, user)
    except StorageError as e:
        raise _http_error(e)
    return _file_response(content, path)


@router.get("/list")
def list_files(
    prefix: str = Query(""),
    auth: AuthContext = Depends(require_user),
    storage: StorageBackend = Depends(get_storage),
) -> dict:
    files = storage.list(prefix, auth.user_id)
    return {"success": True, "data": {"files": files, "prefix": prefix}}


@router.delete("/delete")
def delete_file(
    path: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_user),
    storage: StorageBackend = Depends(get_storage),
) -> dict:
    path = _require_path(path)
    try:
        storage.delete(path, auth.user_id)
    except StorageError as e:
        raise _http_error(e)
    return {"success": True, "message": f"Deleted {path}"}


@router.get("/usage")
def get_usage(
    auth: AuthContext = Depends(require_user),
    storage: StorageBackend = Depends(get_storage),
) -> dict:
    return {"success": True, "data": storage.get_usage(auth.user_id).to_dict()}


@router.get("/signed-url")
def get_signed_url(
    path: Optional[str] = Query(None),
    expires_in: int = Query(3600, alias="expiresIn", gt=0),
    auth: AuthContext = Depends(require_user),
    storage: StorageBackend = Depends(get_storage),
) -> dict:
    path = _require_path(path)
    try:
        url = storage.get_signed_url(path, auth.user_id, expires_in)
    except StorageError as e:
        raise _http_error(e)
    return {"success": True, "data": {"url": url, "expiresIn": expires_in}}
