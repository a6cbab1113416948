"""Client for the media host's chunked upload API."""

import hashlib
import time
from typing import TYPE_CHECKING, Any

import aiohttp
from pydantic import HttpUrl

from learnova.utils.logger import get_logger

from .errors import MediaHostError

if TYPE_CHECKING:
    from learnova.services.credential_pool import Credential
else:
    Credential = object

logger = get_logger(__name__)


def sign_params(params: dict[str, Any], auth_secret: str) -> str:
    """SHA-1 over the alphabetically sorted params with the secret appended."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
    return hashlib.sha1((to_sign + auth_secret).encode()).hexdigest()  # noqa: S324 The media host mandates SHA-1


class MediaHostClient:
    """Talks to one media host API on behalf of whichever credential it is handed."""

    def __init__(self, api_base_url: HttpUrl | str, *, timeout: float = 120) -> None:
        self.api_base_url = str(api_base_url).rstrip("/")
        self.timeout = timeout

    def session(self) -> aiohttp.ClientSession:
        """A fresh session, use it as an async context manager for one job."""
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

    def upload_url(self, credential: Credential) -> str:
        return f"{self.api_base_url}/{credential.account_id}/video/upload"

    def explicit_url(self, credential: Credential) -> str:
        return f"{self.api_base_url}/{credential.account_id}/video/explicit"

    def _signed_form(self, credential: Credential, params: dict[str, Any]) -> aiohttp.FormData:
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["timestamp"] = int(time.time())
        form = aiohttp.FormData()
        for key, value in params.items():
            form.add_field(key, str(value))
        form.add_field("api_key", credential.auth_key)
        form.add_field("signature", sign_params(params, credential.auth_secret.get_secret_value()))
        return form

    async def upload_chunk(
        self,
        session: aiohttp.ClientSession,
        credential: Credential,
        *,
        upload_id: str,
        public_id: str,
        folder: str,
        data: bytes,
        start: int,
        total: int,
    ) -> dict[str, Any]:
        """Send one chunk, all chunks of an object share the same upload_id."""
        form = self._signed_form(credential, {"public_id": public_id, "folder": folder})
        form.add_field("file", data, filename=public_id, content_type="application/octet-stream")

        end = start + len(data) - 1
        headers = {
            "Content-Range": f"bytes {start}-{end}/{total}",
            "X-Unique-Upload-Id": upload_id,
        }

        url = self.upload_url(credential)
        logger.trace("Uploading bytes %d-%d/%d of %s to %s", start, end, total, public_id, credential.account_id)
        async with session.post(url, data=form, headers=headers) as resp:
            resp.raise_for_status()
            response_json = await resp.json()

        if not isinstance(response_json, dict):
            msg = f"Unexpected media host response type: {type(response_json).__name__}"
            raise MediaHostError(msg)

        if "error" in response_json:
            error = response_json["error"]
            message = error.get("message", "unknown") if isinstance(error, dict) else str(error)
            msg = f"Media host rejected chunk: {message}"
            raise MediaHostError(msg)

        return response_json

    async def request_derivatives(
        self,
        credential: Credential,
        *,
        public_id: str,
        transformations: list[str],
    ) -> dict[str, Any]:
        """Ask the media host to build the derived renditions of an uploaded video, asynchronously on its side."""
        params = {
            "public_id": public_id,
            "type": "upload",
            "eager": "|".join(transformations),
            "eager_async": "true",
        }
        form = self._signed_form(credential, params)
        async with self.session() as session, session.post(self.explicit_url(credential), data=form) as resp:
            resp.raise_for_status()
            return await resp.json()
