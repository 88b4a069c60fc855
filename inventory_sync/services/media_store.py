from dataclasses import dataclass
from typing import Protocol
import io
import logging

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from inventory_sync.config import get_settings
from inventory_sync.exceptions import MediaStoreError, UploadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaAsset:
    """Stable locator pair returned by the media store."""
    url: str
    id: str


class MediaStore(Protocol):
    """Hosted image storage."""

    def upload(self, data: bytes, filename: str) -> MediaAsset: ...

    def delete(self, asset_id: str) -> None: ...


class CloudinaryMediaStore:
    """
    Media store backed by Cloudinary.

    Both calls block for the duration of the HTTP round trip. Callers must
    not hold database locks while they are in flight.
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = ""):
        self.folder = folder
        self.config = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "secure": True,
        }

    def upload(self, data: bytes, filename: str) -> MediaAsset:
        """
        Upload an image.

        Args:
            data: Raw image bytes
            filename: Original filename, kept for the stored asset's name

        Returns:
            The asset's secure URL and public id

        Raises:
            UploadError: If Cloudinary reports an error or returns no locator
        """
        stream = io.BytesIO(data)
        stream.name = filename
        try:
            result = cloudinary.uploader.upload(
                stream,
                folder=self.folder or None,
                use_filename=True,
                unique_filename=True,
                **self.config,
            )
        except CloudinaryError as e:
            logger.error(f"Image upload of '{filename}' failed: {e}")
            raise UploadError(f"Image upload failed: {e}") from e

        url = result.get("secure_url") or result.get("url")
        public_id = result.get("public_id")
        if not url or not public_id:
            raise UploadError("Image upload failed: media store returned no locator")

        logger.info(f"Uploaded image '{filename}' as {public_id}")
        return MediaAsset(url=url, id=public_id)

    def delete(self, asset_id: str) -> None:
        """
        Delete an image by public id.

        An asset that is already gone counts as deleted.

        Raises:
            MediaStoreError: If Cloudinary fails or refuses the deletion
        """
        try:
            result = cloudinary.uploader.destroy(asset_id, invalidate=True, **self.config)
        except CloudinaryError as e:
            logger.error(f"Image deletion of {asset_id} failed: {e}")
            raise MediaStoreError(f"Image deletion failed: {e}") from e

        outcome = result.get("result")
        if outcome not in ("ok", "not found"):
            raise MediaStoreError(f"Image deletion failed: {outcome}")

        logger.info(f"Deleted image {asset_id} ({outcome})")


def get_media_store() -> MediaStore:
    """Dependency returning the configured media store."""
    settings = get_settings()
    return CloudinaryMediaStore(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        folder=settings.CLOUDINARY_FOLDER,
    )
