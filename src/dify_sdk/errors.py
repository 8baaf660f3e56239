"""Error types for Dify SDK."""

from enum import Enum


class ErrorKind(str, Enum):
    """Tag shared by every SDK error so callers can branch without isinstance."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    STATUS = "status"
    DECODE = "decode"


class DifyError(Exception):
    """Base error raised by the Dify SDK.

    Attributes:
        code: Machine-readable error code (e.g. "MISSING_CREDENTIAL")
        raw_text: Raw response text, when a server response was involved
        kind: Which failure family the error belongs to
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, code: str, raw_text: str | None = None):
        super().__init__(message)
        self.code = code
        self.raw_text = raw_text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, {str(self)!r})"


class ConfigurationError(DifyError):
    """Call could not be built: missing credential or bad route arguments."""

    kind = ErrorKind.CONFIGURATION


class TransportError(DifyError):
    """Connection failure, timeout or I/O fault while talking to the API."""

    kind = ErrorKind.TRANSPORT


class StatusError(DifyError):
    """The API answered with anything other than HTTP 200."""

    kind = ErrorKind.STATUS

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int,
        raw_text: str | None = None,
    ):
        super().__init__(message, code, raw_text)
        self.status_code = status_code


class DecodeError(DifyError):
    """A successful response did not carry the expected document."""

    kind = ErrorKind.DECODE
