"""
Attachment helpers shared by the complaint and response services.

Uploads are validated before anything is written; blobs are removed only
after the owning rows are gone, and a failed removal is logged, never raised.
"""
import uuid
from collections import namedtuple
from pathlib import Path
from typing import Iterable, List, Optional

import config
from core.exceptions import ValidationError
from core.logger import logger
from core.validators import sanitize_filename, validate_attachment_extension, validate_file_size

AttachmentUpload = namedtuple("AttachmentUpload", ["filename", "content", "content_type"])


def get_storage():
    """Return the configured storage backend."""
    if config.storage is None:
        raise RuntimeError("Attachment storage not initialized")
    return config.storage


def validate_uploads(uploads: Iterable[AttachmentUpload], field: str = "attachments") -> None:
    """
    Check extension and size of every upload.

    Raises:
        ValidationError: keyed ``attachments.<index>`` for each bad file
    """
    allowed = ", ".join(sorted(ext.lstrip(".") for ext in config.ALLOWED_ATTACHMENT_EXTENSIONS))
    max_bytes = config.MAX_ATTACHMENT_SIZE_KB * 1024
    errors = {}
    for index, upload in enumerate(uploads):
        key = f"{field}.{index}"
        messages = []
        if not validate_attachment_extension(upload.filename, config.ALLOWED_ATTACHMENT_EXTENSIONS):
            messages.append(f"The {key} must be a file of type: {allowed}.")
        is_valid, size_error = validate_file_size(len(upload.content or b""), max_bytes)
        if not is_valid:
            messages.append(size_error)
        if messages:
            errors[key] = messages
    if errors:
        raise ValidationError(errors=errors)


def attachment_filename(original_filename: str) -> str:
    """Random stored name keeping the sanitized extension: ``<uuid>.<ext>``."""
    extension = Path(sanitize_filename(original_filename)).suffix.lower()
    return f"{uuid.uuid4()}{extension}"


def store_uploads(folder: str, uploads: Iterable[AttachmentUpload]) -> List[str]:
    """Save validated uploads and return their references in upload order."""
    storage = get_storage()
    refs = []
    try:
        for upload in uploads:
            refs.append(storage.save(folder, attachment_filename(upload.filename), upload.content, upload.content_type))
    except Exception:
        logger.error(f"Upload to {folder} failed after {len(refs)} file(s), removing partial batch")
        delete_attachments(refs)
        raise
    return refs


def delete_attachments(refs: Optional[Iterable[str]]) -> int:
    """
    Best-effort removal of stored attachments.

    Returns:
        Number of references removed
    """
    if not refs:
        return 0
    storage = get_storage()
    removed = 0
    for ref in refs:
        try:
            if storage.delete(ref):
                removed += 1
        except Exception as e:
            logger.warning(f"Failed to delete attachment {ref}: {e}", exc_info=True)
    return removed


def attachment_urls(refs: Optional[Iterable[str]]) -> List[Optional[str]]:
    if not refs or config.storage is None:
        return []
    return [config.storage.url(ref) for ref in refs]


async def read_uploads(files) -> List[AttachmentUpload]:
    """Read FastAPI ``UploadFile`` objects into memory; empty file fields are skipped."""
    uploads = []
    for file in files or []:
        if file is None or not file.filename:
            continue
        content = await file.read()
        uploads.append(AttachmentUpload(file.filename, content, file.content_type))
    return uploads
