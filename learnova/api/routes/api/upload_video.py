"""Upload Video API Blueprint."""

import asyncio
import contextlib
from http import HTTPStatus

from fastapi import APIRouter, HTTPException, Request, Response
from starlette.requests import ClientDisconnect

from learnova.api.deps import CurrentProducer, PipelineDep, PoolDep, SettingsDep
from learnova.services.upload import (
    MULTIPART_OVERHEAD_BYTES,
    MultipartFileReader,
    PayloadTooLarge,
    UploadAborted,
    UploadRejected,
    UploadResult,
    UploadStatus,
    UploadTransferFailed,
    format_size,
)
from learnova.utils.api_models import error_detail
from learnova.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/upload-video", tags=["Upload Video"])

UPLOAD_FIELD_NAME = "video"
DISCONNECT_POLL_SECONDS = 1
CONFIG_MISSING_MESSAGE = "Media host configuration missing"


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


def _rejected(e: UploadRejected) -> HTTPException:
    status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE if isinstance(e, PayloadTooLarge) else HTTPStatus.BAD_REQUEST
    return HTTPException(
        status_code=status,
        detail=error_detail(message=str(e), reason=type(e).__name__),
    )


# region /api/v1/upload-video
@router.post("", response_model_exclude={"account_id"})
async def upload_video(request: Request, producer: CurrentProducer, pipeline: PipelineDep) -> UploadResult:
    """API endpoint to upload a lesson video, relayed to the media host in chunks."""
    if pipeline is None:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=error_detail(message=CONFIG_MISSING_MESSAGE, reason="configuration_error"),
        )

    try:
        reader = MultipartFileReader(
            request.stream(),
            request.headers.get("content-type", ""),
            field_name=UPLOAD_FIELD_NAME,
            max_body_bytes=pipeline.max_upload_bytes + MULTIPART_OVERHEAD_BYTES,
        )
        declared_media_type = await reader.open_file_field()
        job = await pipeline.accept_upload(reader.iter_file(), declared_media_type)
    except ClientDisconnect as e:
        logger.warning("Producer %s disconnected during upload", producer.subject_id)
        raise _rejected(UploadAborted("Upload aborted")) from e
    except UploadRejected as e:
        logger.info("Upload from %s rejected: %s", producer.subject_id, e)
        raise _rejected(e) from e

    credential = pipeline.assign_credential()
    transfer_task = asyncio.create_task(pipeline.transfer(job, credential), name=f"transfer:{job.public_id}")
    disconnect_task = asyncio.create_task(_wait_for_disconnect(request), name=f"disconnect:{job.public_id}")

    try:
        await asyncio.wait({transfer_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED)

        if not transfer_task.done():
            logger.warning("Producer %s disconnected, cancelling transfer of %s", producer.subject_id, job.public_id)
            transfer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await transfer_task
            raise _rejected(UploadAborted("Upload aborted"))

        try:
            result = transfer_task.result()
        except UploadTransferFailed as e:
            logger.error("Upload %s from %s failed: %s (%s)", job.public_id, producer.subject_id, e, e.cause)  # noqa: TRY400 Cause is enough
            raise HTTPException(
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
                detail=error_detail(message="Upload failed", reason="transfer_failed"),
            ) from e
    finally:
        for task in (transfer_task, disconnect_task):
            if not task.done():
                task.cancel()
        job.release()

    logger.info("Producer %s uploaded %s", producer.subject_id, result.media_id)
    return result


@router.get("")
def upload_status(response: Response, settings: SettingsDep, pool: PoolDep) -> UploadStatus:
    """API endpoint to check the upload endpoint is ready."""
    media = settings.media
    if pool is None:
        response.status_code = HTTPStatus.INTERNAL_SERVER_ERROR
        return UploadStatus(status="error", error=CONFIG_MISSING_MESSAGE)

    pool_status = pool.status()
    return UploadStatus(
        status="ready",
        accounts=[account.account_id for account in pool_status.accounts],
        healthy_accounts=pool_status.healthy_count,
        max_file_size=format_size(media.max_upload_bytes),
        chunk_size=format_size(media.chunk_size_bytes),
        max_file_size_bytes=media.max_upload_bytes,
        chunk_size_bytes=media.chunk_size_bytes,
    )
