"""Streaming reader for the single file field of a multipart/form-data body."""

from collections import deque
from typing import TYPE_CHECKING

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from learnova.utils.logger import get_logger

from .errors import PayloadTooLarge, UploadRejected

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator
else:
    AsyncIterable = object
    AsyncIterator = object

logger = get_logger(__name__)

# Allowance for boundaries, part headers and small fields on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class MultipartFileReader:
    """Pulls one named file out of a multipart body without buffering the whole thing.

    Call open_file_field() first to get the part's declared content type,
    then iterate iter_file() for its bytes. Other fields are skipped.
    """

    def __init__(
        self,
        stream: AsyncIterable[bytes],
        content_type: str,
        field_name: str = "video",
        max_body_bytes: int | None = None,
    ) -> None:
        media_type, params = parse_options_header(content_type)
        if media_type != b"multipart/form-data":
            msg = "Expected a multipart/form-data body"
            raise UploadRejected(msg)

        boundary = params.get(b"boundary")
        if not boundary:
            msg = "Multipart body has no boundary"
            raise UploadRejected(msg)

        self.field_name = field_name.encode()
        self.max_body_bytes = max_body_bytes
        self.body_bytes = 0

        self._stream: AsyncIterator[bytes] = aiter(stream)
        self._exhausted = False

        self._header_field = b""
        self._header_value = b""
        self._headers: dict[bytes, bytes] = {}
        self._in_file_part = False
        self._file_done = False
        self._file_content_type: str | None = None
        self._pending: deque[bytes] = deque()

        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
            },
        )

    # region Parser callbacks
    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        if self._file_done or self._file_content_type is not None:
            return

        _, disposition = parse_options_header(self._headers.get(b"content-disposition", b""))
        if disposition.get(b"name") != self.field_name:
            return

        self._in_file_part = True
        self._file_content_type = self._headers.get(b"content-type", b"").decode("latin-1")

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._in_file_part and end > start:
            self._pending.append(data[start:end])

    def _on_part_end(self) -> None:
        if self._in_file_part:
            self._in_file_part = False
            self._file_done = True

    # region Reading
    async def _pump(self) -> None:
        """Feed the next chunk of the request body to the parser."""
        try:
            chunk = await anext(self._stream)
        except StopAsyncIteration:
            self._exhausted = True
            self._parser.finalize()
            return

        self.body_bytes += len(chunk)
        if self.max_body_bytes is not None and self.body_bytes > self.max_body_bytes:
            msg = "Request body too large"
            raise PayloadTooLarge(msg)

        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            logger.debug("Malformed multipart body: %s", e)
            msg = "Malformed multipart body"
            raise UploadRejected(msg) from e

    async def open_file_field(self) -> str:
        """Read up to the file part's headers, returns its declared content type."""
        while self._file_content_type is None:
            if self._exhausted:
                msg = "No video file provided"
                raise UploadRejected(msg)
            await self._pump()

        return self._file_content_type

    async def iter_file(self) -> AsyncIterator[bytes]:
        """Yield the file part's bytes as they arrive."""
        if self._file_content_type is None:
            await self.open_file_field()

        while True:
            while self._pending:
                yield self._pending.popleft()

            if self._file_done:
                return

            if self._exhausted:
                msg = "Request body ended before the video file was complete"
                raise UploadRejected(msg)

            await self._pump()
