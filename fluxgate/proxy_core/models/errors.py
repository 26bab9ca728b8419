from __future__ import annotations


class ProxyError(Exception):
    """Base for failures reported to the caller as ``{success: false}``."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ProxyError):
    status_code = 400


class InvalidTargetError(InvalidRequestError):
    def __init__(self, message: str = "Invalid Target URL. Ensure it is correctly encoded."):
        super().__init__(message)


class UpstreamUnreachableError(ProxyError):
    status_code = 502


class UpstreamTimeoutError(UpstreamUnreachableError):
    status_code = 504


class ExtractionError(ProxyError):
    status_code = 500
