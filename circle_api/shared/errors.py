"""Domain error taxonomy.

Services raise these; the HTTP layer turns them into status codes. None of them
are fatal to the process and none are retried.
"""

from typing import Any, Optional

ERROR_MESSAGES = {
    "SERVER_ERROR": "Server error. Please try again later.",
    "CIRCLE_NOT_FOUND": "Circle not found. Please check the link and try again.",
    "USER_NOT_FOUND": "User not found",
    "RESOURCE_NOT_FOUND": "Resource not found",
    "CLAIM_NOT_FOUND": "Claim not found",
    "RESOURCE_NOT_OWNER": "Only the resource owner can modify this resource",
    "RESOURCE_HAS_ACTIVE_CLAIMS": "Cannot delete resource while it has active claims",
    "USER_NOT_MEMBER": "User is not a member of this circle",
    "CLAIM_NOT_OWNER": "Can only modify your own claims",
    "RESOURCE_UNAVAILABLE": "Resource not available for this time period",
}


class CircleError(Exception):
    """Base class for every recoverable domain error"""

    code = "UNKNOWN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(CircleError):
    """Malformed or missing input, e.g. end <= start"""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(CircleError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(CircleError):
    """Actor lacks rights for the operation"""

    code = "FORBIDDEN"
    status_code = 403


class ConflictError(CircleError):
    """Overlapping interval, or a status transition from the wrong state"""

    code = "CONFLICT"
    status_code = 409


class ServerError(CircleError):
    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str = ERROR_MESSAGES["SERVER_ERROR"], details: Optional[Any] = None) -> None:
        super().__init__(message, details)
