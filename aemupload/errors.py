"""
Error taxonomy for upload operations.

Every failure that leaves the library is an UploadError carrying one of the
ErrorCode values, so callers can branch on ``error.code`` instead of parsing
messages.
"""
from __future__ import annotations

import traceback
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCode(str, Enum):
    """Error codes exposed on UploadError.code."""
    UNKNOWN = "EUNKNOWN"
    NOT_FOUND = "ENOTFOUND"
    NOT_SUPPORTED = "ENOTSUPPORTED"
    INVALID_OPTIONS = "EINVALIDOPTIONS"
    NOT_AUTHORIZED = "ENOTAUTHORIZED"
    UNEXPECTED_API_STATE = "EUNEXPECTEDAPISTATE"
    ALREADY_EXISTS = "EALREADYEXISTS"
    FORBIDDEN = "EFORBIDDEN"
    USER_CANCELLED = "EUSERCANCELLED"
    TOO_LARGE = "ETOOLARGE"


_STATUS_CODES: Dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_OPTIONS,
    401: ErrorCode.NOT_AUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.ALREADY_EXISTS,
}


def code_for_status(status_code: int) -> ErrorCode:
    return _STATUS_CODES.get(status_code, ErrorCode.UNKNOWN)


class UploadError(Exception):
    """Raised for any failure during an upload."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        inner_stack: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.inner_stack = inner_stack
        self.status_code = status_code

    @property
    def http_status_code(self) -> Optional[int]:
        return self.status_code

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message, "code": self.code.value}
        if self.status_code is not None:
            data["httpStatusCode"] = self.status_code
        if self.inner_stack:
            data["innerStack"] = self.inner_stack
        return data

    def __repr__(self) -> str:
        return f"UploadError(code={self.code.value!r}, message={self.message!r})"

    @classmethod
    def from_error(cls, error: Any, message: str = "") -> "UploadError":
        """
        Convert an arbitrary error into an UploadError.

        Existing UploadErrors pass through untouched. HTTP status errors are
        mapped by status code and transport errors become UNKNOWN.
        """
        if isinstance(error, UploadError):
            return error

        prefix = f"{message}: " if message else ""

        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            return cls(
                f"{prefix}request failed with status {status}",
                code_for_status(status),
                _format_stack(error),
                status_code=status,
            )

        if isinstance(error, httpx.TransportError):
            return cls(
                f"{prefix}{type(error).__name__}: {error}",
                ErrorCode.UNKNOWN,
                _format_stack(error),
            )

        if isinstance(error, str):
            return cls(f"{prefix}{error}", ErrorCode.UNKNOWN)

        if isinstance(error, BaseException):
            return cls(f"{prefix}{error}", ErrorCode.UNKNOWN, _format_stack(error))

        return cls(f"{prefix}{error!r}", ErrorCode.UNKNOWN)


def _format_stack(error: BaseException) -> Optional[str]:
    if error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def is_retryable_error(error: BaseException) -> bool:
    """True for server-side (5xx) and network level failures."""
    if isinstance(error, UploadError):
        if error.code == ErrorCode.USER_CANCELLED:
            return False
        return error.status_code is not None and error.status_code >= 500
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.TransportError)
