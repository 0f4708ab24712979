"""
Custom exception hierarchy for the PayFast gateway.

All application-level exceptions inherit from AppException so they can be
caught by a single global handler that renders ``{"error", "details"}``.
"""


class AppException(Exception):
    """Base for all app exceptions."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response_body(self) -> dict:
        body: dict = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class MissingParameterError(AppException):
    """Raised when a required body field or path parameter is absent."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="MISSING_PARAMETER",
            message=message,
            details=details,
        )


class InvalidSignatureError(AppException):
    """Raised when an inbound ITN signature does not match."""

    def __init__(self, message: str = "Invalid signature", details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="INVALID_SIGNATURE",
            message=message,
            details=details,
        )


class InvalidRequestError(AppException):
    """Raised when a request body cannot be parsed or has the wrong shape."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="INVALID_REQUEST",
            message=message,
            details=details,
        )
