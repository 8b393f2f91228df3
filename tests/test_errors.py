"""Tests for the error taxonomy."""
import httpx
import pytest

from aemupload.errors import ErrorCode, UploadError, code_for_status, is_retryable_error


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://localhost:4502/content/dam")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("failed", request=request, response=response)


class TestStatusMapping:
    @pytest.mark.parametrize(
        "status,code",
        [
            (400, ErrorCode.INVALID_OPTIONS),
            (401, ErrorCode.NOT_AUTHORIZED),
            (403, ErrorCode.FORBIDDEN),
            (404, ErrorCode.NOT_FOUND),
            (409, ErrorCode.ALREADY_EXISTS),
            (500, ErrorCode.UNKNOWN),
            (503, ErrorCode.UNKNOWN),
        ],
    )
    def test_code_for_status(self, status, code):
        assert code_for_status(status) == code

    def test_from_http_status_error(self):
        error = UploadError.from_error(_status_error(409), "creating folder")
        assert error.code == ErrorCode.ALREADY_EXISTS
        assert error.http_status_code == 409
        assert error.message.startswith("creating folder: ")


class TestFromError:
    def test_upload_error_passes_through(self):
        original = UploadError("boom", ErrorCode.TOO_LARGE)
        assert UploadError.from_error(original, "ignored") is original

    def test_string(self):
        error = UploadError.from_error("something odd")
        assert error.code == ErrorCode.UNKNOWN
        assert error.message == "something odd"

    def test_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            error = UploadError.from_error(e)
        assert error.code == ErrorCode.UNKNOWN
        assert "bad value" in error.message
        assert "ValueError" in error.inner_stack

    def test_transport_error(self):
        error = UploadError.from_error(httpx.ConnectError("refused"))
        assert error.code == ErrorCode.UNKNOWN
        assert "ConnectError" in error.message

    def test_to_dict(self):
        data = UploadError("nope", ErrorCode.FORBIDDEN, status_code=403).to_dict()
        assert data == {"message": "nope", "code": "EFORBIDDEN", "httpStatusCode": 403}


class TestRetryable:
    def test_server_errors_are_retryable(self):
        assert is_retryable_error(_status_error(500)) is True
        assert is_retryable_error(_status_error(503)) is True

    def test_client_errors_are_not_retryable(self):
        assert is_retryable_error(_status_error(404)) is False
        assert is_retryable_error(_status_error(409)) is False

    def test_network_errors_are_retryable(self):
        assert is_retryable_error(httpx.ConnectError("refused")) is True
        assert is_retryable_error(httpx.ReadTimeout("slow")) is True

    def test_cancellation_is_not_retryable(self):
        assert is_retryable_error(UploadError("stop", ErrorCode.USER_CANCELLED)) is False

    def test_plain_exceptions_are_not_retryable(self):
        assert is_retryable_error(ValueError("x")) is False
