"""
SpaceRemit Integration Exceptions

Custom exception classes for SpaceRemit gateway API errors.
"""

from typing import Optional


class SpaceRemitError(Exception):
    """Base error for any failed SpaceRemit API call"""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        response_prefix: Optional[str] = None,
    ):
        self.message = message
        self.original_error = original_error
        self.response_prefix = response_prefix
        super().__init__(self.message)

    def __str__(self):
        if self.original_error:
            return f"{self.message} | Original error: {str(self.original_error)}"
        return self.message


class SpaceRemitTransportError(SpaceRemitError):
    """Raised when the request never produced an HTTP response"""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        retryable: bool = False,
    ):
        self.retryable = retryable
        super().__init__(message, original_error)


class SpaceRemitRemoteError(SpaceRemitError):
    """Raised on a non-200 status or an undecodable response body"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_prefix: Optional[str] = None,
    ):
        self.status_code = status_code
        super().__init__(message, response_prefix=response_prefix)

    @property
    def retryable(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class SpaceRemitConfigurationError(SpaceRemitError):
    """Raised when the active mode has no secret key configured"""
