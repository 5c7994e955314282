"""
Cloudinary client.

Uploads go through ``cloudinary.uploader`` and folder cleanup through the
Admin API in ``cloudinary.api``. The SDK is synchronous, so every call runs
in a worker thread. Credentials are passed per call instead of through the
global ``cloudinary.config`` so several clients can coexist.

https://cloudinary.com/documentation/django_image_and_video_upload
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Any, Optional

import cloudinary
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
import structlog

from core.exceptions import CdnError

logger = structlog.get_logger(__name__)


@dataclass
class UploadedImage:
    public_url: str
    public_id: str
    folder: Optional[str]


class CloudinaryClient:
    """Upload images and delete round folders."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: Optional[float] = 60.0,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self._api_secret = api_secret
        self.timeout = timeout

    def _options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self._api_secret,
            "secure": True,
        }
        if self.timeout is not None:
            options["timeout"] = self.timeout
        return options

    async def upload(
        self,
        source: str | bytes,
        *,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
    ) -> UploadedImage:
        """
        Upload an image from a public URL, a data URI or raw bytes.

        Raises:
            CdnError: Source unreachable for Cloudinary or upload rejected.
        """
        file = io.BytesIO(source) if isinstance(source, bytes) else source
        options = self._options()
        options["overwrite"] = True
        if folder:
            options["folder"] = folder
        if public_id:
            options["public_id"] = public_id

        try:
            result = await asyncio.to_thread(cloudinary.uploader.upload, file, **options)
        except cloudinary.exceptions.Error as e:
            raise CdnError(f"Cloudinary upload failed: {e}", context={"step": "upload"}) from e

        if not isinstance(result, dict) or not result.get("secure_url"):
            raise CdnError(
                "Cloudinary upload returned no secure_url",
                context={"step": "upload"},
            )

        logger.info("cloudinary_upload_completed", public_id=result.get("public_id"), folder=folder)
        return UploadedImage(
            public_url=result["secure_url"],
            public_id=result.get("public_id", ""),
            folder=folder,
        )

    async def delete_folder(self, folder: str) -> None:
        """
        Delete every image under ``folder`` and then the folder itself.

        Raises:
            CdnError: The Admin API rejected either call.
        """
        options = self._options()
        prefix = folder.rstrip("/") + "/"

        try:
            await asyncio.to_thread(cloudinary.api.delete_resources_by_prefix, prefix, **options)
        except cloudinary.exceptions.Error as e:
            raise CdnError(
                f"Cloudinary resource cleanup failed: {e}",
                context={"step": "delete_resources", "folder": folder},
            ) from e

        try:
            await asyncio.to_thread(cloudinary.api.delete_folder, folder, **options)
        except cloudinary.exceptions.NotFound:
            # already gone
            pass
        except cloudinary.exceptions.Error as e:
            raise CdnError(
                f"Cloudinary folder delete failed: {e}",
                context={"step": "delete_folder", "folder": folder},
            ) from e

        logger.info("cloudinary_folder_deleted", folder=folder)
