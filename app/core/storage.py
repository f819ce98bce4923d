"""Supabase Storage client for file uploads."""
import logging
import uuid
from functools import lru_cache
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an upload or delete cannot be completed."""


class StorageClient:
    """Client for Supabase Storage operations."""

    def __init__(self, url: str, service_key: str, bucket: str):
        self.url = url
        self.service_key = service_key
        self.bucket_name = bucket
        self._client = None

    def get_client(self):
        """Get or create Supabase client."""
        if self._client is None:
            if not self.url or not self.service_key:
                raise StorageError(
                    "Supabase credentials not configured. "
                    "Set SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables."
                )
            from supabase import create_client

            self._client = create_client(self.url, self.service_key)
        return self._client

    def get_bucket(self):
        """Get the storage bucket."""
        return self.get_client().storage.from_(self.bucket_name)

    def upload(self, content: bytes, path: str, content_type: str) -> str:
        """
        Upload file to Supabase Storage.

        Args:
            content: File content as bytes
            path: Storage path (e.g., "Nanocart/HomePageBannerSale/ab12cd34ef56.png")
            content_type: MIME type (e.g., "image/png")

        Returns:
            Public URL of the uploaded file
        """
        bucket = self.get_bucket()
        try:
            bucket.upload(
                path=path,
                file=content,
                file_options={"content-type": content_type, "upsert": "true"}
            )
        except Exception as e:
            raise StorageError(f"Upload failed for {path}: {e}") from e

        return self.get_public_url(path)

    def delete(self, path: str) -> bool:
        """
        Delete file from Supabase Storage.

        Args:
            path: Storage path or full URL

        Returns:
            True if a delete request was issued
        """
        if path.startswith("http"):
            path = self.extract_path_from_url(path)

        if not path:
            return False

        try:
            self.get_bucket().remove([path])
        except Exception as e:
            raise StorageError(f"Delete failed for {path}: {e}") from e
        return True

    def get_public_url(self, path: str) -> str:
        return self.get_bucket().get_public_url(path)

    def extract_path_from_url(self, url: str) -> Optional[str]:
        """
        Extract storage path from a Supabase Storage URL.

        URL format: https://xxx.supabase.co/storage/v1/object/public/<bucket>/path/file.ext
        """
        if not url:
            return None

        marker = f"/storage/v1/object/public/{self.bucket_name}/"
        if marker in url:
            return url.split(marker)[1].split("?")[0]

        return None

    @staticmethod
    def generate_unique_filename(original_filename: str, prefix: str = "") -> str:
        """
        Generate a unique filename to prevent collisions.

        Args:
            original_filename: Original file name
            prefix: Optional folder prefix

        Returns:
            Unique filename with path
        """
        ext = ""
        if original_filename and "." in original_filename:
            ext = "." + original_filename.rsplit(".", 1)[1].lower()

        unique_id = uuid.uuid4().hex[:12]

        if prefix:
            return f"{prefix}/{unique_id}{ext}"
        return f"{unique_id}{ext}"


@lru_cache()
def get_storage() -> StorageClient:
    """Process-wide storage client, overridable as a FastAPI dependency."""
    return StorageClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY,
        settings.SUPABASE_STORAGE_BUCKET,
    )
