"""Chunked upload pipeline, spools producer uploads and relays them to the media host."""

import asyncio
import contextlib
import secrets
from typing import TYPE_CHECKING, Any, Self

import aiohttp

from learnova.utils.exception_handling import describe_aiohttp_exception, log_aiohttp_exception
from learnova.utils.logger import get_logger

from .client import MediaHostClient
from .errors import MediaHostError, PayloadTooLarge, UnsupportedMediaType, UploadRejected, UploadTransferFailed
from .job import UploadJob
from .models import UploadResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterable
    from pathlib import Path

    from learnova.core.config import MediaConf
    from learnova.services.credential_pool import Credential, CredentialPool
    from learnova.utils.background_tasks import BackgroundTasks
else:
    AsyncIterable = object
    Path = object
    MediaConf = object
    Credential = object
    CredentialPool = object
    BackgroundTasks = object

logger = get_logger(__name__)

# Leading bytes of common formats that are never video, whatever the producer declared
NON_VIDEO_SIGNATURES: dict[bytes, str] = {
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"\xff\xd8\xff": "image/jpeg",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
    b"%PDF-": "application/pdf",
    b"PK\x03\x04": "application/zip",
    b"\x7fELF": "application/x-executable",
    b"MZ": "application/x-msdownload",
}
SNIFF_BYTES = max(len(signature) for signature in NON_VIDEO_SIGNATURES)


def normalize_media_type(declared_media_type: str | None) -> str:
    """Drop parameters and case, 'Video/MP4; codecs=x' becomes 'video/mp4'."""
    if not declared_media_type:
        return ""
    return declared_media_type.split(";", 1)[0].strip().lower()


def sniff_non_video(head: bytes) -> str | None:
    """Return the detected type if the first bytes are clearly not a video."""
    for signature, media_type in NON_VIDEO_SIGNATURES.items():
        if head.startswith(signature):
            return media_type
    return None


def format_size(size_bytes: int) -> str:
    return f"{size_bytes // (1024 * 1024)}MB"


class UploadPipeline:
    """Accepts large videos from producers and streams them to one media host account in chunks."""

    def __init__(
        self,
        client: MediaHostClient,
        pool: CredentialPool,
        tasks: BackgroundTasks,
        *,
        temp_dir: Path,
        max_upload_bytes: int,
        chunk_size_bytes: int,
        chunk_retries: int = 3,
        retry_delay: float = 1,
        folder: str = "",
        eager_transformations: list[str] | None = None,
    ) -> None:
        self._client = client
        self._pool = pool
        self._tasks = tasks
        self.temp_dir = temp_dir
        self.max_upload_bytes = max_upload_bytes
        self.chunk_size_bytes = chunk_size_bytes
        self.chunk_retries = chunk_retries
        self.retry_delay = retry_delay
        self.folder = folder
        self.eager_transformations = eager_transformations or []

    @classmethod
    def from_settings(
        cls,
        media: MediaConf,
        pool: CredentialPool,
        tasks: BackgroundTasks,
        temp_dir: Path,
    ) -> Self:
        return cls(
            client=MediaHostClient(media.api_base_url, timeout=media.request_timeout),
            pool=pool,
            tasks=tasks,
            temp_dir=temp_dir,
            max_upload_bytes=media.max_upload_bytes,
            chunk_size_bytes=media.chunk_size_bytes,
            chunk_retries=media.chunk_retries,
            folder=media.folder,
            eager_transformations=media.eager_transformations,
        )

    # region Accept
    async def accept_upload(
        self,
        stream: AsyncIterable[bytes],
        declared_media_type: str,
        max_size_bytes: int | None = None,
    ) -> UploadJob:
        """Spool an upload to a temporary file, enforcing type and size as the bytes arrive.

        Ownership of the temporary file passes to the returned job, on any
        failure here it is released before the exception propagates.
        """
        media_type = normalize_media_type(declared_media_type)
        if not media_type.startswith("video/"):
            msg = "Only video files are allowed"
            raise UnsupportedMediaType(msg)

        limit = max_size_bytes if max_size_bytes is not None else self.max_upload_bytes

        with contextlib.ExitStack() as stack:
            job = stack.enter_context(UploadJob.allocate(self.temp_dir, media_type))
            size = 0
            head = b""
            with job.source_path.open("wb") as f:
                async for data in stream:
                    # Chunks can be tiny, sniff on the accumulated head
                    if len(head) < SNIFF_BYTES and data:
                        head += data[: SNIFF_BYTES - len(head)]
                        sniffed = sniff_non_video(head)
                        if sniffed:
                            msg = f"Only video files are allowed, got {sniffed}"
                            raise UnsupportedMediaType(msg)

                    size += len(data)
                    if size > limit:
                        msg = f"File too large. Maximum size is {format_size(limit)}"
                        raise PayloadTooLarge(msg)

                    await asyncio.to_thread(f.write, data)

            if size == 0:
                msg = "No video file provided"
                raise UploadRejected(msg)

            job.size_bytes = size
            stack.pop_all()

        logger.info("Accepted upload %s, %.2f MB (%s)", job.public_id, size / (1024 * 1024), media_type)
        return job

    # region Assign
    def assign_credential(self) -> Credential:
        """Pick the account for a job, re-checking health in case it went bad since selection."""
        credential = self._pool.select_for_operation()
        if self._pool.is_healthy(credential):
            return credential

        candidate = self._pool.next_candidate(excluding=credential)
        if candidate.account_id != credential.account_id and self._pool.is_healthy(candidate):
            logger.info("Media account %s unhealthy, using %s instead", credential.account_id, candidate.account_id)
            return candidate

        return credential

    # region Transfer
    async def transfer(
        self,
        job: UploadJob,
        credential: Credential,
        chunk_size_bytes: int | None = None,
    ) -> UploadResult:
        """Stream a job to one account in chunks, the job is always released when this returns."""
        chunk_size = chunk_size_bytes or self.chunk_size_bytes

        with job:
            logger.info(
                "Uploading %s to media account %s in %s chunks",
                job.public_id,
                credential.account_id,
                format_size(chunk_size),
            )
            upload_id = secrets.token_hex(16)
            response: dict[str, Any] = {}

            async with self._client.session() as session:
                with job.source_path.open("rb") as f:
                    start = 0
                    while start < job.size_bytes:
                        data = await asyncio.to_thread(f.read, chunk_size)
                        if not data:
                            msg = f"Temporary file for {job.public_id} ended early at {start} bytes"
                            raise UploadTransferFailed(msg)

                        response = await self._send_chunk(session, credential, job, upload_id, data, start)
                        start += len(data)

            try:
                result = UploadResult.from_media_host(
                    response,
                    account_id=credential.account_id,
                    derived_variants=self.eager_transformations,
                )
            except MediaHostError as e:
                self._pool.report_failure(credential, reason=str(e))
                msg = f"Upload of {job.public_id} did not complete"
                raise UploadTransferFailed(msg, cause=e) from e

        self._pool.report_success(credential)
        logger.info("Upload %s complete on %s: %s", result.media_id, credential.account_id, result.secure_url)

        if self.eager_transformations:
            self._tasks.schedule(
                self._request_derivatives(credential, result.media_id),
                name=f"derivatives:{result.media_id}",
            )

        return result

    async def _send_chunk(
        self,
        session: aiohttp.ClientSession,
        credential: Credential,
        job: UploadJob,
        upload_id: str,
        data: bytes,
        start: int,
    ) -> dict[str, Any]:
        """Send one chunk, retrying it a bounded number of times on the same account."""
        last_error: Exception | None = None

        for attempt in range(1, self.chunk_retries + 1):
            try:
                return await self._client.upload_chunk(
                    session,
                    credential,
                    upload_id=upload_id,
                    public_id=job.public_id,
                    folder=self.folder,
                    data=data,
                    start=start,
                    total=job.size_bytes,
                )
            except (aiohttp.ClientError, TimeoutError, MediaHostError, ValueError) as e:
                last_error = e
                reason = describe_aiohttp_exception(e)
                logger.warning(
                    "Chunk at byte %d of %s failed on %s, attempt %d/%d: %s",
                    start,
                    job.public_id,
                    credential.account_id,
                    attempt,
                    self.chunk_retries,
                    reason,
                )
                self._pool.report_failure(credential, reason=reason)

            if attempt < self.chunk_retries:
                await asyncio.sleep(self.retry_delay * attempt)

        msg = f"Upload of {job.public_id} failed after {self.chunk_retries} attempts at byte {start}"
        raise UploadTransferFailed(msg, cause=last_error)

    async def _request_derivatives(self, credential: Credential, media_id: str) -> None:
        try:
            await self._client.request_derivatives(
                credential,
                public_id=media_id,
                transformations=self.eager_transformations,
            )
        except (aiohttp.ClientError, TimeoutError) as e:
            log_aiohttp_exception(
                logger,
                self._client.explicit_url(credential),
                e,
                message=f"requesting derivatives for {media_id}",
            )
            return

        logger.info("Requested %d derivative(s) for %s", len(self.eager_transformations), media_id)
