from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    ALREADY_JOINED = "ALREADY_JOINED"
    NOT_ATTENDING = "NOT_ATTENDING"
    EVENT_FULL = "EVENT_FULL"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ServiceError(Exception):
    default_code = ErrorCode.INTERNAL_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, code: ErrorCode | None = None) -> None:
        self.code = code or self.default_code
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    default_code = ErrorCode.VALIDATION_ERROR
    default_message = "invalid input"


class NotFoundError(ServiceError):
    default_code = ErrorCode.EVENT_NOT_FOUND
    default_message = "Event not found"


class PermissionDeniedError(ServiceError):
    default_code = ErrorCode.FORBIDDEN
    default_message = "Not authorized to modify this event"


class ConflictError(ServiceError):
    pass


class AlreadyJoinedError(ConflictError):
    default_code = ErrorCode.ALREADY_JOINED
    default_message = "You have already RSVPed to this event"


class NotAttendingError(ConflictError):
    default_code = ErrorCode.NOT_ATTENDING
    default_message = "You are not RSVPed to this event"


class CapacityExceededError(ConflictError):
    default_code = ErrorCode.EVENT_FULL
    default_message = "Event is at full capacity"


class StoreUnavailableError(ServiceError):
    default_code = ErrorCode.STORE_UNAVAILABLE
    default_message = "Server error, please try again later"
