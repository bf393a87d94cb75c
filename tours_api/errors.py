"""
Error types for the Tours API.

Every error a handler or service raises on purpose is an AppError (or the
structured RequestValidationFailed). The central formatter in
tours_api/error_handlers.py turns them into the JSON envelope:

    4xx -> {"status": "fail", "message": ...}
    5xx -> {"status": "error", "message": ...}
    validation -> {"message": "Validation failed", "errors": [...]}
"""

from typing import Any, Dict, List


class AppError(Exception):
    """
    Operational error with an HTTP status code.

    Attributes:
        message: User-facing message
        status_code: HTTP status returned to the client
        status: "fail" for 4xx, "error" for 5xx
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = "fail" if 400 <= status_code < 500 else "error"

    def to_response(self) -> Dict[str, Any]:
        """Convert to the standard error envelope."""
        return {"status": self.status, "message": self.message}


class BadRequestError(AppError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class UnauthorizedError(AppError):
    def __init__(self, message: str):
        super().__init__(message, 401)


class ForbiddenError(AppError):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, 403)


class NotFoundError(AppError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class TooManyRequestsError(AppError):
    def __init__(self, message: str = "Too many requests from this IP, please try again in an hour!"):
        super().__init__(message, 429)


class DocumentValidationError(AppError):
    """Raised by the persistence layer when a document breaks a stored-data rule."""

    def __init__(self, message: str, path: str):
        super().__init__(message, 400)
        self.path = path


class RequestValidationFailed(Exception):
    """
    One or more request surfaces failed schema validation.

    `errors` has one entry per failing surface:

        [{"in": "query", "errors": [{"path": "sort.1", "message": "..."}]}]
    """

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__("Validation failed")
        self.errors = errors

    @classmethod
    def single(cls, part: str, path: str, message: str) -> "RequestValidationFailed":
        """Build a failure carrying a single issue on one surface."""
        return cls([{"in": part, "errors": [{"path": path, "message": message}]}])

    def to_response(self) -> Dict[str, Any]:
        return {"message": "Validation failed", "errors": self.errors}
