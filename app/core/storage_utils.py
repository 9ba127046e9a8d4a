# app/core/storage_utils.py
import logging
import uuid
from functools import lru_cache
from urllib.parse import urlparse

from supabase import Client

from app.core.config import get_settings
from app.core.exceptions import UpstreamError
from app.core.supabase_client import supabase_admin

logger = logging.getLogger(__name__)


def object_id_from_url(url: str) -> str | None:
    """
    Derive the storage object id from a public URL.

    The id is the last path segment without its extension:

        https://<proj>.supabase.co/storage/v1/object/public/catalog/products/ab12.png
        -> 'ab12'

    Query strings and fragments are ignored. Returns None if the URL has no
    usable last segment.
    """
    path = urlparse(url).path
    last = path.rsplit("/", 1)[-1]
    object_id = last.split(".", 1)[0]
    return object_id or None


def generate_object_id() -> str:
    """Random object id (UUID4 hex, no extension)."""
    return uuid.uuid4().hex


class ImageStore:
    """
    Product image storage on a Supabase Storage bucket.

    Objects live at `<folder>/<object_id>` with no extension, so the id
    recovered from a public URL is enough to address the object again.
    The content type is stored as object metadata instead.
    """

    def __init__(self, bucket: str, folder: str, client: Client | None = None):
        self._client = client
        self.bucket = bucket
        self.folder = folder.strip("/")

    @property
    def client(self) -> Client:
        # Resolved on first use so public routes work without Storage config.
        if self._client is None:
            self._client = supabase_admin()
        return self._client

    def _path(self, object_id: str) -> str:
        return f"{self.folder}/{object_id}" if self.folder else object_id

    def upload(self, file_bytes: bytes, content_type: str) -> str:
        """
        Upload raw bytes and return the object's public URL.

        Raises:
            UpstreamError: if Supabase rejects the upload or is unreachable.
        """
        path = self._path(generate_object_id())
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(path, file_bytes, {"content-type": content_type})
            return bucket.get_public_url(path)
        except Exception as exc:
            logger.warning("Image upload to %s/%s failed: %s", self.bucket, path, exc)
            raise UpstreamError("Image upload failed") from exc

    def destroy(self, object_id: str) -> None:
        """
        Delete an object by id.

        Raises:
            UpstreamError: if Supabase rejects the delete or is unreachable.
        """
        path = self._path(object_id)
        try:
            # Supabase Python client expects a list of paths.
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:
            raise UpstreamError("Image delete failed") from exc


@lru_cache
def get_image_store() -> ImageStore:
    """
    Cached ImageStore bound to the configured bucket.

    Also used as a FastAPI dependency (tests override it).
    """
    settings = get_settings()
    return ImageStore(
        bucket=settings.STORAGE_BUCKET,
        folder=settings.STORAGE_FOLDER,
    )
