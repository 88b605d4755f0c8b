"""
Recipes API - Cloudinary Image Store Tests (Mocked)
=====================================================

What:  CloudinaryImageStore with the Cloudinary SDK patched out.
How:   cloudinary.uploader.upload / destroy are replaced with MagicMocks, so
       no credentials or network are needed.
"""

from unittest.mock import patch

import cloudinary.exceptions
import pytest

from recipes_api.config import Settings
from recipes_api.exceptions import ImageStoreError
from recipes_api.services.image_store import CloudinaryImageStore, UploadedImage

UPLOAD_RESULT = {
    "public_id": "recipes/abc123",
    "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/recipes/abc123.png",
    "url": "http://res.cloudinary.com/demo/image/upload/v1/recipes/abc123.png",
}


class TestCloudinaryImageStore:

    def setup_method(self):
        self.store = CloudinaryImageStore(cloud_name="demo", api_key="key", api_secret="secret")

    @pytest.mark.asyncio
    async def test_upload_returns_secure_url_and_public_id(self):
        with patch("cloudinary.uploader.upload", return_value=UPLOAD_RESULT) as mock_upload:
            result = await self.store.upload("/tmp/dish.png", "recipes")

        assert result == UploadedImage(url=UPLOAD_RESULT["secure_url"], asset_id="recipes/abc123")
        mock_upload.assert_called_once_with("/tmp/dish.png", folder="recipes", resource_type="image")

    @pytest.mark.asyncio
    async def test_upload_failure_raises_image_store_error(self):
        with patch("cloudinary.uploader.upload", side_effect=cloudinary.exceptions.Error("Invalid image file")):
            with pytest.raises(ImageStoreError, match="upload"):
                await self.store.upload("/tmp/dish.png", "recipes")

    @pytest.mark.asyncio
    async def test_delete_calls_destroy(self):
        with patch("cloudinary.uploader.destroy", return_value={"result": "ok"}) as mock_destroy:
            await self.store.delete("recipes/abc123")
        mock_destroy.assert_called_once_with("recipes/abc123")

    @pytest.mark.asyncio
    async def test_delete_of_unknown_asset_does_not_raise(self):
        with patch("cloudinary.uploader.destroy", return_value={"result": "not found"}):
            await self.store.delete("recipes/gone")

    @pytest.mark.asyncio
    async def test_delete_failure_raises_image_store_error(self):
        with patch("cloudinary.uploader.destroy", side_effect=cloudinary.exceptions.Error("timeout")):
            with pytest.raises(ImageStoreError):
                await self.store.delete("recipes/abc123")

    def test_from_settings_uses_credentials(self):
        config = Settings(
            cloudinary_cloud_name="demo-cloud",
            cloudinary_api_key="k",
            cloudinary_api_secret="s",
        )
        store = CloudinaryImageStore.from_settings(config)
        assert store.cloud_name == "demo-cloud"
