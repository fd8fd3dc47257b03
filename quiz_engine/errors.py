"""Error taxonomy raised by the services and mapped to HTTP at the boundary."""

from fastapi import status


class ExamError(Exception):
    """Base class; ``status_code`` is what the API answers with."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An internal server error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ExamError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(ExamError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class ConflictError(ExamError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ValidationFailedError(ExamError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InternalError(ExamError):
    pass
