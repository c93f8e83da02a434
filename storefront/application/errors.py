"""Error taxonomy shared by every storefront service.

Services raise the most specific subclass at the point of failure. The API
layer maps ``kind`` and ``status_code`` onto the failure envelope, so the
distinction between bad input, a missing entity and a storage fault survives
all the way to the client.
"""

from typing import Optional


class ServiceError(Exception):
    kind = "InternalFailure"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ServiceError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid request"


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = 404
    default_message = "Resource not found"


class Unauthorized(ServiceError):
    kind = "Unauthorized"
    status_code = 401
    default_message = "Authentication required"


class UploadFailed(ServiceError):
    kind = "UploadFailed"
    status_code = 502
    default_message = "Failed to upload image"


class InvalidTransition(ServiceError):
    kind = "InvalidTransition"
    status_code = 409
    default_message = "Status change is not allowed"


class InternalFailure(ServiceError):
    pass
