"""Image upload to Cloudinary."""

import logging
from typing import Optional

import cloudinary.uploader

from errors import MediaUploadFailed

logger = logging.getLogger(__name__)


class CloudinaryUploader:
    """Uploads event images and returns their public https URL."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "DevEvent"):
        self.folder = folder
        self._options = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "secure": True,
        }

    @classmethod
    def from_settings(cls, settings) -> "CloudinaryUploader":
        return cls(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
        )

    def upload(self, data: bytes, filename: Optional[str] = None) -> str:
        if not data:
            raise MediaUploadFailed("Image upload failed: empty file", field="image")
        try:
            result = cloudinary.uploader.upload(
                data,
                resource_type="image",
                folder=self.folder,
                **self._options,
            )
        except Exception as e:
            logger.error(f"Image upload failed for {filename or 'unnamed file'}: {e}")
            raise MediaUploadFailed(f"Image upload failed: {e}", field="image") from e

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise MediaUploadFailed("Image upload failed: no URL returned", field="image")
        logger.info(f"Uploaded image {result.get('public_id')}")
        return url
