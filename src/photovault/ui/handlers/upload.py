"""Upload handlers for photovault application."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import structlog

from photovault.config import get_max_upload_size, get_upload_max_workers
from photovault.error_handling import UploadError, ValidationError, handle_error
from photovault.models.photo import PhotoRecord
from photovault.models.user import Session
from photovault.services.metadata import get_metadata_service
from photovault.services.storage import get_storage_service

logger = structlog.get_logger()

_timestamp_lock = threading.Lock()
_last_timestamp_ms = 0


def format_file_size(size_bytes: float) -> str:
    """Format a byte count for display."""
    if size_bytes < 1024:
        return f"{int(size_bytes)} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def validate_upload(file_name: str, content_type: str | None, size: int) -> None:
    """
    Check a file before any request is made.

    This only spares the user a round trip: it is trivially bypassed and the
    storage and metadata policies remain the only authority.

    Raises:
        ValidationError: If the file is not declared as an image or is too large
    """
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError(
            f"Rejected non-image file: {file_name}",
            code="not_an_image",
            user_message="Apenas imagens são permitidas",
            details={"file_name": file_name, "content_type": content_type},
        )

    max_size = get_max_upload_size()
    if size > max_size:
        raise ValidationError(
            f"File too large: {file_name} ({size} bytes)",
            code="file_too_large",
            user_message=f"Arquivo muito grande (máx {max_size // (1024 * 1024)}MB)",
            details={"file_name": file_name, "file_size": size, "max_size": max_size},
        )


def _next_timestamp_ms() -> int:
    """Millisecond clock that never returns the same value twice in this process."""
    global _last_timestamp_ms
    with _timestamp_lock:
        now = int(time.time() * 1000)
        _last_timestamp_ms = max(now, _last_timestamp_ms + 1)
        return _last_timestamp_ms


def generate_storage_path(user_id: str, file_name: str) -> str:
    """
    Build the storage key for a new upload: ``{user_id}/{timestamp_ms}.{ext}``.

    The extension is whatever follows the last dot of the original name, or the
    whole name when it has no dot.
    """
    extension = file_name.rsplit(".", 1)[-1]
    return f"{user_id}/{_next_timestamp_ms()}.{extension}"


def upload_photo(session: Session, file_name: str, content_type: str | None, data: bytes) -> dict[str, Any]:
    """
    Upload one photo: validate, store the file, then insert its metadata row.

    The two writes are not transactional. When the insert fails after the file
    was stored, the file is left in place (orphaned) and reported as a partial
    failure.

    Returns:
        dict: ``success``, ``file_name`` and either ``photo``/``message`` or ``error`` details
    """
    try:
        validate_upload(file_name, content_type, len(data))
    except ValidationError as e:
        logger.warning("upload_validation_failed", file_name=file_name, code=e.code)
        return {"success": False, "file_name": file_name, "error": e.user_message, "code": e.code}

    storage_service = get_storage_service()
    metadata_service = get_metadata_service()
    file_path = generate_storage_path(session.user_id, file_name)

    try:
        storage_service.upload_file(session, file_path, data, content_type)
    except Exception as e:
        error_info = handle_error(e, {"operation": "upload_file", "file_path": file_path})
        return {"success": False, "file_name": file_name, "error": error_info.user_message, "code": error_info.code}

    record = PhotoRecord.create_new(
        user_id=session.user_id,
        file_name=file_name,
        file_path=file_path,
        file_size=len(data),
    )

    try:
        metadata_service.insert_photo_metadata(session, record)
    except Exception as e:
        cause = handle_error(e, {"operation": "insert_photo_metadata", "file_path": file_path})
        # The stored file is left in place
        partial = UploadError(
            f"Stored file has no metadata row: {file_path}",
            code="metadata_insert_failed",
            user_message="A foto foi enviada, mas não pôde ser registrada na galeria.",
            details={"file_path": file_path, "cause": cause.code},
            original_exception=e,
        )
        return {
            "success": False,
            "file_name": file_name,
            "error": partial.user_message,
            "code": partial.code,
            "cause": cause.code,
            "partial_failure": "orphaned_file",
            "file_path": file_path,
        }

    logger.info("photo_uploaded", user_id=session.user_id, file_path=file_path, file_size=len(data))
    return {
        "success": True,
        "file_name": file_name,
        "file_path": file_path,
        "photo": record,
        "message": "Foto enviada com sucesso!",
    }


def upload_photos(session: Session, files: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Upload several photos as independent concurrent requests.

    Args:
        session: Caller session
        files: Dicts with ``file_name``, ``content_type`` and ``data``

    Returns:
        One result dict per file, in input order
    """
    if not files:
        return []

    with ThreadPoolExecutor(max_workers=min(get_upload_max_workers(), len(files))) as executor:
        futures = [
            executor.submit(upload_photo, session, item["file_name"], item.get("content_type"), item["data"])
            for item in files
        ]
        results = [future.result() for future in futures]

    successful = sum(1 for result in results if result["success"])
    logger.info("batch_upload_completed", user_id=session.user_id, total=len(results), successful=successful)
    return results
