"""Chunked relay of producer uploads to the media host."""

from .client import MediaHostClient, sign_params
from .errors import (
    MediaHostError,
    PayloadTooLarge,
    UnsupportedMediaType,
    UploadAborted,
    UploadError,
    UploadRejected,
    UploadTransferFailed,
)
from .job import UploadJob
from .models import UploadResult, UploadStatus
from .multipart import MULTIPART_OVERHEAD_BYTES, MultipartFileReader
from .pipeline import UploadPipeline, format_size

__all__ = [
    "MULTIPART_OVERHEAD_BYTES",
    "MediaHostClient",
    "MediaHostError",
    "MultipartFileReader",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "UploadAborted",
    "UploadError",
    "UploadJob",
    "UploadPipeline",
    "UploadRejected",
    "UploadResult",
    "UploadStatus",
    "UploadTransferFailed",
    "format_size",
    "sign_params",
]
