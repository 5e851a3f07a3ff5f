"""Object storage for vehicle and part photos.

Two backends share one interface:

    LocalStorage     files under settings.UPLOAD_ROOT, served from /static
    SupabaseStorage  a Supabase project's storage buckets

``get_storage()`` picks one from ``settings.STORAGE_BACKEND``. Both raise
StorageError; callers catch it and flash a message.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from config import settings
from apps.core.errors import StorageError
from apps.core.images import compress_many, file_size_mb, format_file_size

logger = logging.getLogger(__name__)

VEHICLE_IMAGES = "vehicle-images"
PART_IMAGES = "part-images"
AVATARS = "avatars"
BUCKETS = (VEHICLE_IMAGES, PART_IMAGES, AVATARS)


@dataclass
class Bucket:
    name: str
    public: bool = True
    allowed_mime_types: List[str] = field(default_factory=lambda: list(settings.BUCKET_ALLOWED_MIME_TYPES))
    file_size_limit: int = settings.BUCKET_FILE_SIZE_LIMIT


_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def object_path(owner_id, filename: str) -> str:
    """Storage key for an upload: ``<owner>/<uuid>-<safe filename>``."""
    safe = _UNSAFE_RE.sub("-", Path(filename or "image").name).strip("-.") or "image"
    return f"{owner_id}/{uuid.uuid4().hex}-{safe}"


class BaseStorage:
    def get_bucket(self, name: str) -> Optional[Bucket]:
        raise NotImplementedError

    def create_bucket(self, bucket: Bucket) -> Bucket:
        raise NotImplementedError

    def list_buckets(self) -> List[Bucket]:
        raise NotImplementedError

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        raise NotImplementedError

    def get_public_url(self, bucket: str, path: str) -> str:
        raise NotImplementedError

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        raise NotImplementedError

    def path_from_url(self, bucket: str, url: str) -> Optional[str]:
        prefix = self.get_public_url(bucket, "")
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    def ensure_buckets(self) -> None:
        for name in BUCKETS:
            try:
                if self.get_bucket(name):
                    logger.info("%s bucket already exists", name)
                    continue
                logger.info("Creating %s bucket...", name)
                self.create_bucket(Bucket(name=name))
                logger.info("%s bucket created successfully", name)
            except StorageError as e:
                logger.error("Error creating %s bucket: %s", name, e)

    def _check(self, bucket: Bucket, data: bytes, content_type: str) -> None:
        if bucket.allowed_mime_types and content_type not in bucket.allowed_mime_types:
            raise StorageError(f"mime type {content_type} is not supported")
        if bucket.file_size_limit and len(data) > bucket.file_size_limit:
            raise StorageError(
                f"The object exceeded the maximum allowed size of {file_size_mb(bucket.file_size_limit):g} MB"
            )


class LocalStorage(BaseStorage):
    """Buckets are directories below ``root``; bucket settings live in memory."""

    def __init__(self, root: Optional[Path] = None, public_url: Optional[str] = None):
        self.root = Path(root or settings.UPLOAD_ROOT)
        self.public_url = (public_url or settings.UPLOAD_PUBLIC_URL).rstrip("/")
        self._buckets: Dict[str, Bucket] = {}

    def get_bucket(self, name: str) -> Optional[Bucket]:
        if name in self._buckets:
            return self._buckets[name]
        if (self.root / name).is_dir():
            self._buckets[name] = Bucket(name=name)
            return self._buckets[name]
        return None

    def create_bucket(self, bucket: Bucket) -> Bucket:
        if self.get_bucket(bucket.name):
            raise StorageError(f"Bucket {bucket.name} already exists")
        (self.root / bucket.name).mkdir(parents=True, exist_ok=True)
        self._buckets[bucket.name] = bucket
        return bucket

    def list_buckets(self) -> List[Bucket]:
        if not self.root.is_dir():
            return []
        return [self.get_bucket(p.name) for p in sorted(self.root.iterdir()) if p.is_dir()]

    def _resolve(self, bucket: str, path: str) -> Path:
        base = (self.root / bucket).resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise StorageError(f"Invalid object path: {path}")
        return target

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        config = self.get_bucket(bucket)
        if not config:
            raise StorageError("Bucket not found")
        self._check(config, data, content_type)

        destination = self._resolve(bucket, path)
        if destination.exists():
            raise StorageError("The resource already exists")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)

        logger.info("Uploaded %s/%s (%d bytes)", bucket, path, len(data))
        return self.get_public_url(bucket, path)

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_url}/{bucket}/{path}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        for path in paths:
            target = self._resolve(bucket, path)
            if target.is_file():
                target.unlink()
                logger.info("Removed %s/%s", bucket, path)


class SupabaseStorage(BaseStorage):
    """Storage buckets of a Supabase project (service key required)."""

    def __init__(self, supabase_url: Optional[str] = None, supabase_key: Optional[str] = None):
        self._url = (supabase_url or settings.SUPABASE_URL or "").rstrip("/")
        self._key = supabase_key or settings.SUPABASE_SERVICE_KEY or ""
        self._client = None

    def _get_client(self):
        """Lazy-initialize Supabase client."""
        if self._client is not None:
            return self._client
        if not self._url or not self._key:
            raise StorageError("SUPABASE_URL / SUPABASE_SERVICE_KEY must be set in .env")
        from supabase import create_client

        self._client = create_client(self._url, self._key)
        return self._client

    def get_bucket(self, name: str) -> Optional[Bucket]:
        try:
            found = self._get_client().storage.get_bucket(name)
        except StorageError:
            raise
        except Exception as e:
            logger.info("Bucket %s not available: %s", name, e)
            return None
        return Bucket(
            name=found.name,
            public=found.public,
            allowed_mime_types=found.allowed_mime_types or [],
            file_size_limit=found.file_size_limit or 0,
        )

    def create_bucket(self, bucket: Bucket) -> Bucket:
        try:
            self._get_client().storage.create_bucket(
                bucket.name,
                options={
                    "public": bucket.public,
                    "allowed_mime_types": bucket.allowed_mime_types,
                    "file_size_limit": bucket.file_size_limit,
                },
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(str(e)) from e
        return bucket

    def list_buckets(self) -> List[Bucket]:
        try:
            found = self._get_client().storage.list_buckets()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(str(e)) from e
        return [Bucket(name=b.name, public=b.public) for b in found]

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        try:
            self._get_client().storage.from_(bucket).upload(
                path=path,
                file=data,
                file_options={"content-type": content_type},
            )
        except StorageError:
            raise
        except Exception as e:
            logger.error("Upload failed for %s/%s: %s", bucket, path, e)
            raise StorageError(str(e)) from e

        public_url = self.get_public_url(bucket, path)
        logger.info("Uploaded: %s -> %s", path, public_url)
        return public_url

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self._url}/storage/v1/object/public/{bucket}/{path}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        paths = list(paths)
        if not paths:
            return
        try:
            self._get_client().storage.from_(bucket).remove(paths)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(str(e)) from e


_storage: Optional[BaseStorage] = None


def get_storage() -> BaseStorage:
    global _storage
    if _storage is None:
        if settings.STORAGE_BACKEND == "supabase":
            _storage = SupabaseStorage()
        else:
            _storage = LocalStorage()
    return _storage


def set_storage(storage: Optional[BaseStorage]) -> None:
    global _storage
    _storage = storage


@dataclass
class StoredImage:
    """Where a photo ended up, and how much compression shrank it."""

    url: str
    original_size: int
    stored_size: int

    @property
    def savings_percent(self) -> int:
        if not self.original_size:
            return 0
        return max(0, round((1 - self.stored_size / self.original_size) * 100))

    def summary(self) -> str:
        return (
            f"Photo compressed from {format_file_size(self.original_size)} "
            f"to {format_file_size(self.stored_size)} ({self.savings_percent}% smaller)"
        )


def upload_image(bucket: str, owner_id, data: bytes, filename: str, content_type: str,
                 storage: Optional[BaseStorage] = None) -> StoredImage:
    """Compress a photo and upload it.

    When compression fails the original bytes are uploaded as-is.
    """
    storage = storage or get_storage()
    image = compress_many([(data, filename, content_type)])[0]
    url = storage.upload(bucket, object_path(owner_id, image.filename), image.data, image.content_type)
    return StoredImage(url=url, original_size=len(data), stored_size=len(image.data))


def remove_urls(bucket: str, urls: Iterable[str], storage: Optional[BaseStorage] = None) -> None:
    """Delete stored objects by public URL. Failures are logged, never raised."""
    storage = storage or get_storage()
    paths = [p for p in (storage.path_from_url(bucket, url) for url in urls if url) if p]
    if not paths:
        return
    try:
        storage.remove(bucket, paths)
    except StorageError as e:
        logger.error("Could not remove %d objects from %s: %s", len(paths), bucket, e)
