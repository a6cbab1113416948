"""Upload pipeline exceptions."""


class UploadError(Exception):
    """Base class for upload failures."""


# region Client errors, never retried
class UploadRejected(UploadError):
    """The upload request itself is unacceptable."""


class UnsupportedMediaType(UploadRejected):
    """Declared or sniffed type is not a video."""


class PayloadTooLarge(UploadRejected):
    """The body went past the configured ceiling."""


class UploadAborted(UploadRejected):
    """The producer went away before the upload finished."""


# region Transfer errors
class MediaHostError(UploadError):
    """The media host answered, but not with something usable."""


class UploadTransferFailed(UploadError):
    """A chunk failed on every attempt, the whole job is abandoned."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
