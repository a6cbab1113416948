"""Tests for the streaming multipart reader."""

from collections.abc import AsyncIterator

import pytest

from learnova.services.upload import MultipartFileReader, PayloadTooLarge, UploadRejected
from tests.test_utils.media import multipart_body


async def stream_in_pieces(body: bytes, piece_size: int = 7) -> AsyncIterator[bytes]:
    for start in range(0, len(body), piece_size):
        yield body[start : start + piece_size]


async def read_all(reader: MultipartFileReader) -> bytes:
    return b"".join([chunk async for chunk in reader.iter_file()])


async def test_reads_file_field() -> None:
    content = bytes(range(256)) * 4
    body, content_type = multipart_body(content)
    reader = MultipartFileReader(stream_in_pieces(body), content_type)

    assert await reader.open_file_field() == "video/mp4"
    assert await read_all(reader) == content


async def test_single_piece_body() -> None:
    body, content_type = multipart_body(b"video bytes")
    reader = MultipartFileReader(stream_in_pieces(body, piece_size=len(body)), content_type)

    assert await read_all(reader) == b"video bytes"


async def test_declared_type_passed_through() -> None:
    body, content_type = multipart_body(b"%PDF-1.7", content_type="application/pdf")
    reader = MultipartFileReader(stream_in_pieces(body), content_type)

    assert await reader.open_file_field() == "application/pdf"


async def test_missing_field() -> None:
    body, content_type = multipart_body(b"video bytes", field_name="attachment")
    reader = MultipartFileReader(stream_in_pieces(body), content_type)

    with pytest.raises(UploadRejected, match="No video file"):
        await reader.open_file_field()


def test_not_multipart() -> None:
    with pytest.raises(UploadRejected):
        MultipartFileReader(stream_in_pieces(b"{}"), "application/json")

    with pytest.raises(UploadRejected):
        MultipartFileReader(stream_in_pieces(b""), "multipart/form-data")


async def test_body_too_large() -> None:
    body, content_type = multipart_body(b"x" * 10_000)
    reader = MultipartFileReader(stream_in_pieces(body, piece_size=1000), content_type, max_body_bytes=5000)

    with pytest.raises(PayloadTooLarge):
        await read_all(reader)


async def test_truncated_body() -> None:
    body, content_type = multipart_body(b"x" * 1000)
    reader = MultipartFileReader(stream_in_pieces(body[:500]), content_type)

    with pytest.raises(UploadRejected, match="ended before"):
        await read_all(reader)
