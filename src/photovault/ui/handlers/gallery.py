"""Gallery handlers for photovault application."""

from typing import Any

import structlog

from photovault.error_handling import UploadError, handle_error
from photovault.models.photo import PhotoRecord
from photovault.models.user import Session
from photovault.services.metadata import get_metadata_service
from photovault.services.storage import get_storage_service

logger = structlog.get_logger()


def load_photos(session: Session) -> dict[str, Any]:
    """
    Load the caller's photos, newest first.

    Returns:
        dict: ``success`` and ``photos``, or ``error`` when the query fails
    """
    try:
        photos = get_metadata_service().list_photos(session)
    except Exception as e:
        error_info = handle_error(e, {"operation": "load_photos"})
        logger.error("gallery_load_failed", code=error_info.code)
        return {"success": False, "photos": [], "error": "Erro ao carregar fotos", "code": error_info.code}

    return {"success": True, "photos": photos}


def get_photo_url(file_path: str) -> str:
    """Get the public URL used to display a photo."""
    return get_storage_service().get_public_url(file_path)


def delete_photo(session: Session, photo: PhotoRecord) -> dict[str, Any]:
    """
    Delete a photo: remove the stored file, then delete its metadata row.

    The two writes are not transactional. When the row delete fails after the
    file was removed, the row is left pointing at a missing file (dangling) and
    reported as a partial failure.

    Returns:
        dict: ``success`` and ``message``, or ``error`` details
    """
    storage_service = get_storage_service()
    metadata_service = get_metadata_service()

    try:
        storage_service.remove_files(session, [photo.file_path])
    except Exception as e:
        error_info = handle_error(e, {"operation": "remove_files", "file_path": photo.file_path})
        return {"success": False, "photo_id": photo.id, "error": error_info.user_message, "code": error_info.code}

    try:
        deleted = metadata_service.delete_photo_metadata(session, photo.id)
    except Exception as e:
        cause = handle_error(e, {"operation": "delete_photo_metadata", "photo_id": photo.id})
        # The metadata row is left in place
        partial = UploadError(
            f"Metadata row points at a removed file: {photo.file_path}",
            code="metadata_delete_failed",
            user_message="O arquivo foi removido, mas a foto ainda aparece na galeria.",
            details={"photo_id": photo.id, "file_path": photo.file_path, "cause": cause.code},
            original_exception=e,
        )
        return {
            "success": False,
            "photo_id": photo.id,
            "error": partial.user_message,
            "code": partial.code,
            "cause": cause.code,
            "partial_failure": "dangling_metadata",
            "file_path": photo.file_path,
        }

    logger.info("photo_deleted", user_id=session.user_id, photo_id=photo.id, row_deleted=deleted)
    return {"success": True, "photo_id": photo.id, "message": "Foto excluída"}
