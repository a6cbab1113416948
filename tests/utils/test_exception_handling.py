import logging

import aiohttp
import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from learnova.services.upload import MediaHostError
from learnova.utils.exception_handling import describe_aiohttp_exception, log_aiohttp_exception
from learnova.utils.logger import get_logger

UPLOAD_URL = "https://api.media.test/v1_1/account-1/video/upload"


def response_error(status: int) -> aiohttp.ClientResponseError:
    request_info = aiohttp.RequestInfo(
        url=URL(UPLOAD_URL),
        method="POST",
        headers=CIMultiDictProxy(CIMultiDict()),
        real_url=URL(UPLOAD_URL),
    )
    return aiohttp.ClientResponseError(request_info=request_info, history=(), status=status, message="Bad Gateway")


@pytest.mark.parametrize(
    ("exception", "expected"),
    [
        (response_error(502), "ClientResponseError (status: 502 Bad Gateway)"),
        (aiohttp.ClientConnectionError(), "ClientConnectionError"),
        (TimeoutError(), "TimeoutError"),
        (MediaHostError("Invalid Signature"), "MediaHostError: Invalid Signature"),
    ],
)
def test_describe(exception: BaseException, expected: str) -> None:
    assert describe_aiohttp_exception(exception) == expected


def test_log(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR):
        log_aiohttp_exception(get_logger(__name__), UPLOAD_URL, response_error(500), message="uploading chunk")

    assert f"aiohttp ClientResponseError uploading chunk {UPLOAD_URL}" in caplog.text
    assert "status: 500" in caplog.text
