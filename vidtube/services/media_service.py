"""Media store client for the Cloudinary upload API."""

import asyncio
import hashlib
import time
from pathlib import Path
from typing import Optional

import httpx
import structlog

from vidtube.config import Settings
from vidtube.errors import UploadError
from vidtube.models.user import MediaAsset

logger = structlog.get_logger(__name__)

# Results of a destroy call that leave the asset gone
DELETED_RESULTS = {"ok", "not found"}


def sign_params(params: dict, api_secret: str) -> str:
    """Compute a Cloudinary request signature.

    Parameters are sorted by name, joined as ``k=v`` pairs with ``&``, the
    API secret is appended, and the result is SHA-1 hex digested.
    """
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def _remove_local_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("staged_file_remove_failed", path=str(path), error=str(e))


class MediaService:
    """Uploads staged files to the media store and deletes old assets."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(
            self.settings.cloudinary_cloud_name
            and self.settings.cloudinary_api_key
            and self.settings.cloudinary_api_secret
        )

    def _endpoint(self, resource_type: str, action: str) -> str:
        return (
            f"{self.settings.media_api_base_url}/"
            f"{self.settings.cloudinary_cloud_name}/{resource_type}/{action}"
        )

    def _signed_form(self, params: dict) -> dict:
        form = dict(params)
        form["signature"] = sign_params(params, self.settings.cloudinary_api_secret)
        form["api_key"] = self.settings.cloudinary_api_key
        return form

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.media_timeout_seconds)
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def upload(self, local_path: str) -> MediaAsset:
        """Upload a staged local file and remove it afterwards.

        The local file is removed whether the upload succeeds or fails.

        Args:
            local_path: Path of the staged file

        Returns:
            MediaAsset with the secure URL and public id

        Raises:
            UploadError: If the file is missing, the store is not configured,
                or the store rejects or fails the upload
        """
        path = Path(local_path)
        try:
            return await self._upload(path)
        finally:
            await asyncio.to_thread(_remove_local_file, path)

    async def _upload(self, path: Path) -> MediaAsset:
        if not self.configured:
            logger.error("media_store_not_configured")
            raise UploadError("Media storage is not configured")

        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("staged_file_unreadable", path=str(path), error=str(e))
            raise UploadError("Uploaded file could not be read") from e

        form = self._signed_form({"timestamp": int(time.time())})
        client = await self._get_client()

        try:
            response = await client.post(
                self._endpoint("auto", "upload"),
                data=form,
                files={"file": (path.name, content)},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "media_upload_rejected",
                status_code=e.response.status_code,
                file=path.name,
            )
            raise UploadError("Media store rejected the upload") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("media_upload_failed", file=path.name, error=str(e))
            raise UploadError("Media upload failed") from e

        url = body.get("secure_url") or body.get("url")
        public_id = body.get("public_id")
        if not url or not public_id:
            logger.error("media_upload_incomplete_response", file=path.name)
            raise UploadError("Media store returned an incomplete response")

        logger.info("media_uploaded", public_id=public_id, bytes=len(content))
        return MediaAsset(url=url, public_id=public_id)

    async def delete(self, public_id: str, resource_type: str = "image") -> None:
        """Delete an asset from the media store.

        An asset that is already gone counts as deleted.

        Raises:
            UploadError: If the store is unreachable or refuses the delete
        """
        if not self.configured:
            raise UploadError("Media storage is not configured")

        form = self._signed_form(
            {"public_id": public_id, "timestamp": int(time.time())}
        )
        client = await self._get_client()

        try:
            response = await client.post(
                self._endpoint(resource_type, "destroy"), data=form
            )
            response.raise_for_status()
            result = response.json().get("result")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("media_delete_failed", public_id=public_id, error=str(e))
            raise UploadError("Media delete failed") from e

        if result not in DELETED_RESULTS:
            logger.warning("media_delete_refused", public_id=public_id, result=result)
            raise UploadError(f"Media store could not delete asset: {result}")

        logger.info("media_deleted", public_id=public_id, result=result)
