"""Error taxonomy shared by the booking core and its HTTP routes."""

from fastapi import HTTPException, status


class BookingError(Exception):
    """Base class for every error the booking core raises on purpose."""

    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST


class Conflict(BookingError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT


class Unauthorized(BookingError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN


class StorageUnavailable(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class StorageTimeout(StorageUnavailable):
    pass


class WriteConflict(Exception):
    """A concurrent write aborted the storage transaction.

    Raised by repositories and consumed by the booking retry loop; callers of
    the core only ever see the resulting ``Conflict``.
    """


def to_http_exception(exc: BookingError) -> HTTPException:
    headers = {'Retry-After': '1'} if exc.retryable else None
    return HTTPException(status_code=exc.status_code, detail=exc.message, headers=headers)
