"""Product image storage backends.

The catalog only keeps the public URL returned by ``upload``.
"""

import hashlib
import logging
import os
import time
import uuid
from typing import Optional, Protocol

import httpx

from app.core.exceptions import UpstreamServiceException

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


def safe_extension(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return ext if ext in ALLOWED_EXTENSIONS else ""


class ImageStorage(Protocol):
    async def upload(self, data: bytes, filename: str, folder: str) -> str:
        ...


class LocalImageStorage:
    """Writes images under UPLOAD_DIR; served by the app at /media."""

    def __init__(self, upload_dir: str, public_base_url: str, mount_path: str = "/media"):
        self.upload_dir = upload_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.mount_path = mount_path

    async def upload(self, data: bytes, filename: str, folder: str) -> str:
        target_dir = os.path.join(self.upload_dir, folder)
        os.makedirs(target_dir, exist_ok=True)
        ext = safe_extension(filename)
        safe_name = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex

        try:
            with open(os.path.join(target_dir, safe_name), "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to store image {filename}: {e}")
            raise UpstreamServiceException("Image storage unavailable") from e

        return f"{self.public_base_url}{self.mount_path}/{folder}/{safe_name}"


class CloudinaryImageStorage:
    """Signed uploads to the Cloudinary upload API."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not (cloud_name and api_key and api_secret):
            raise ValueError("Cloudinary credentials are required")
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        self._transport = transport

    def sign(self, params: dict) -> str:
        """Cloudinary signature: sha1 of sorted params followed by the secret."""
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    async def upload(self, data: bytes, filename: str, folder: str) -> str:
        params = {"folder": folder, "timestamp": str(int(time.time()))}
        form = {**params, "api_key": self.api_key, "signature": self.sign(params)}
        url = f"https://api.cloudinary.com/v1_1/{self.cloud_name}/image/upload"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, data=form, files={"file": (filename, data)})
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Cloudinary upload failed: {e.response.status_code} - {e.response.text[:200]}")
            raise UpstreamServiceException("Image upload failed") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Cloudinary connection error: {e}")
            raise UpstreamServiceException("Image storage unavailable") from e

        secure_url = body.get("secure_url")
        if not secure_url:
            raise UpstreamServiceException("Image storage returned no URL")
        return secure_url
