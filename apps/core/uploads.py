"""Photo uploads from HTML forms.

Only the storage upload runs under UPLOAD_TIMEOUT in a worker thread; it
never touches the database session. Callers save rows afterwards on the
request thread and call ``remove_urls`` if that save fails.
"""

import logging
from typing import List, Optional

from fastapi import Request, UploadFile

from config import settings
from apps.core.errors import BackendTimeout, StorageError
from apps.core.flash import flash
from apps.core.storage import upload_image
from apps.core.utils import call_with_timeout

logger = logging.getLogger(__name__)


async def store_upload(request: Request, bucket: str, owner_id: int, upload: Optional[UploadFile]) -> Optional[str]:
    """Upload one photo; on failure flash the error and return None."""
    if not upload or not upload.filename:
        return None
    data = await upload.read()
    if not data:
        return None

    try:
        stored = await call_with_timeout(
            settings.UPLOAD_TIMEOUT, upload_image,
            bucket, owner_id, data, upload.filename, upload.content_type or "application/octet-stream",
            label="upload",
        )
    except (StorageError, BackendTimeout) as e:
        logger.error("Image upload failed for user %s: %s", owner_id, e)
        flash(request, f"Image upload failed: {e}", "error")
        return None

    if stored.stored_size < stored.original_size:
        flash(request, stored.summary(), "info")
    return stored.url


async def store_uploads(request: Request, bucket: str, owner_id: int, uploads: List[UploadFile]) -> List[str]:
    urls = []
    for upload in uploads:
        url = await store_upload(request, bucket, owner_id, upload)
        if url:
            urls.append(url)
    return urls
