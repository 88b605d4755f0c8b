"""
Recipes API - Image Store Adapter
===================================

What:  Uploads recipe images to an image host and deletes them by asset id.
How:   ImageStore is the abstract contract; CloudinaryImageStore implements it
       with the Cloudinary SDK. The SDK is synchronous, so each call runs in
       Starlette's worker thread pool to keep the event loop free.
Who:   Called by RecipeService on create, update (image replacement) and delete.

Contract:
    upload(path, folder) → UploadedImage(url, asset_id)
    delete(asset_id)     → None

    `url` is the public HTTPS address stored on the recipe; `asset_id` is the
    Cloudinary public_id, kept only to delete the image later.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

from recipes_api.config import Settings
from recipes_api.exceptions import ImageStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedImage:
    url: str
    asset_id: str


class ImageStore(ABC):
    """Abstract interface for the image host."""

    @abstractmethod
    async def upload(self, path: str, folder: str) -> UploadedImage:
        """
        Upload the image file at `path` into `folder`.

        Raises:
            ImageStoreError: The host rejected the file or was unreachable.
        """
        ...

    @abstractmethod
    async def delete(self, asset_id: str) -> None:
        """
        Delete a previously uploaded image.

        Raises:
            ImageStoreError: The host could not be reached or refused the call.
        """
        ...


class CloudinaryImageStore(ImageStore):
    """
    Cloudinary-backed image store.

    Credentials come from settings (CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET). Uploads are delivered over HTTPS (secure=True).
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.cloud_name = cloud_name

    @classmethod
    def from_settings(cls, config: Settings) -> "CloudinaryImageStore":
        if not config.cloudinary_configured:
            logger.warning("Cloudinary credentials missing; image uploads will fail")
        return cls(
            cloud_name=config.cloudinary_cloud_name,
            api_key=config.cloudinary_api_key,
            api_secret=config.cloudinary_api_secret,
        )

    async def upload(self, path: str, folder: str) -> UploadedImage:
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                path,
                folder=folder,
                resource_type="image",
            )
        except cloudinary.exceptions.Error as e:
            logger.error("Cloudinary upload failed (cloud=%s): %s", self.cloud_name, str(e))
            raise ImageStoreError(
                message="Failed to upload the image",
                context={"folder": folder, "error": str(e)},
            ) from e

        logger.info("Uploaded image to Cloudinary: %s", result["public_id"])
        return UploadedImage(url=result["secure_url"], asset_id=result["public_id"])

    async def delete(self, asset_id: str) -> None:
        try:
            result = await run_in_threadpool(cloudinary.uploader.destroy, asset_id)
        except cloudinary.exceptions.Error as e:
            logger.error("Cloudinary delete failed for %s: %s", asset_id, str(e))
            raise ImageStoreError(
                message="Failed to delete the image",
                context={"asset_id": asset_id, "error": str(e)},
            ) from e

        # destroy() answers {"result": "not found"} for unknown ids; nothing left to remove
        if result.get("result") != "ok":
            logger.warning("Cloudinary delete of %s returned %s", asset_id, result.get("result"))
        else:
            logger.info("Deleted image from Cloudinary: %s", asset_id)
