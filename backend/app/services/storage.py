import logging
import uuid
from pathlib import Path

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import UploadError, ValidationFailed

logger = logging.getLogger(__name__)

CERTIFICATES = "certificates"
RECEIPTS = "receipts"
PROCESSED_DOCUMENTS = "processed_documents"

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
}


async def read_upload(file: UploadFile, *, field_name: str) -> bytes:
    """Read an uploaded file, rejecting unsupported, empty or oversized ones."""
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        message = "Unsupported file type. Allowed: PDF, JPEG, PNG, WEBP"
        raise ValidationFailed(message, field_errors={field_name: message})

    content = await file.read()
    if not content:
        message = "Uploaded file is empty"
        raise ValidationFailed(message, field_errors={field_name: message})
    if len(content) > settings.MAX_UPLOAD_SIZE_BYTES:
        message = "Uploaded file is too large"
        raise ValidationFailed(message, field_errors={field_name: message})
    return content


def store_upload(*, content: bytes, filename: str | None, subfolder: str) -> str:
    """Write ``content`` under the uploads root and return its public path."""
    safe_name = Path(filename or "uploaded-document").name
    storage_dir = Path(settings.UPLOADS_DIR) / subfolder
    storage_name = f"{uuid.uuid4()}_{safe_name}"
    try:
        storage_dir.mkdir(parents=True, exist_ok=True)
        (storage_dir / storage_name).write_bytes(content)
    except OSError as exc:
        logger.exception("Could not write upload into %s", storage_dir)
        raise UploadError("Could not store the uploaded file") from exc
    return f"{settings.UPLOADS_URL_PREFIX}/{subfolder}/{storage_name}"


def resolve_upload_path(public_path: str) -> Path:
    relative = public_path.removeprefix(settings.UPLOADS_URL_PREFIX).lstrip("/")
    return Path(settings.UPLOADS_DIR) / relative


def remove_upload(public_path: str) -> None:
    try:
        resolve_upload_path(public_path).unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove orphaned upload %s", public_path)
