"""Error taxonomy for slot and booking operations.

Every error carries a stable ``code`` (sent to API callers as ``{code, message}``)
and the HTTP status the API layer maps it to.
"""

from fastapi import status


class BookingError(Exception):
    code = 'BookingError'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'code': self.code, 'message': self.message}


class ValidationError(BookingError):
    code = 'ValidationError'


class InvalidRange(ValidationError):
    code = 'InvalidRange'


class NotFound(BookingError):
    code = 'NotFound'
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(BookingError):
    code = 'Forbidden'
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(BookingError):
    code = 'Conflict'
    status_code = status.HTTP_409_CONFLICT


class SlotUnavailable(BookingError):
    code = 'SlotUnavailable'
    status_code = status.HTTP_409_CONFLICT


class Overlap(BookingError):
    code = 'Overlap'
    status_code = status.HTTP_409_CONFLICT


class SlotBooked(BookingError):
    code = 'SlotBooked'
    status_code = status.HTTP_409_CONFLICT


class DuplicateBooking(BookingError):
    code = 'DuplicateBooking'
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(BookingError):
    code = 'InvalidTransition'
    status_code = status.HTTP_409_CONFLICT


class StorageFailure(BookingError):
    code = 'StorageFailure'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = 'Database unavailable. Verify DATABASE_URL and database credentials.'):
        super().__init__(message)
